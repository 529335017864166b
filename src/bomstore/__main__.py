import sys

from bomstore.cli import main


sys.exit(main())
