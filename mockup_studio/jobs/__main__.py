import sys

from mockup_studio.jobs.cli import main


sys.exit(main())
