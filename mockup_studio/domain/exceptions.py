from __future__ import annotations


class DomainError(Exception):
    """Base para erros de dominio."""


class ValidationError(DomainError):
    """Parametros de entrada invalidos."""


class UnauthorizedError(DomainError):
    """Credencial ausente ou invalida."""


class ForbiddenError(DomainError):
    """Usuario autenticado sem permissao para a operacao."""


class NotFoundError(DomainError):
    """Recurso solicitado nao existe."""


class UserNotFoundError(NotFoundError):
    """Conta de usuario nao existe."""


class GuestSessionNotFoundError(NotFoundError):
    """Sessao de visitante nao existe."""


class ArtworkNotFoundError(NotFoundError):
    """Arte nao existe para o usuario."""


class MockupNotFoundError(NotFoundError):
    """Mockup nao existe para o usuario."""


class InsufficientCreditsError(DomainError):
    """Saldo de creditos menor que o custo da operacao."""


class AlreadyClaimedError(DomainError):
    """Sessao de visitante ja foi resgatada."""


class AlreadySentError(DomainError):
    """Email da sessao de visitante ja foi enviado."""


class EmailMismatchError(DomainError):
    """Email informado difere do email da sessao."""


class RateLimitedError(DomainError):
    """Limite diario de requisicoes atingido."""


class GenerationError(DomainError):
    """Falha ao gerar uma imagem no modelo externo."""


class AllGenerationsFailedError(DomainError):
    """Nenhuma categoria foi gerada com sucesso."""

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.errors = list(errors or [])


class StorageError(DomainError):
    """Falha ao gravar ou remover arquivos no storage."""


class EmailDeliveryError(DomainError):
    """Falha ao enviar email transacional."""


class BillingError(DomainError):
    """Falha em operacao de cobranca."""


class BillingConfigError(BillingError):
    """Configuracao de cobranca ausente."""

    def __init__(self, message: str, missing_env_vars: list[str] | None = None):
        super().__init__(message)
        self.missing_env_vars = list(missing_env_vars or [])


class BillingSignatureError(BillingError):
    """Assinatura do webhook invalida."""
