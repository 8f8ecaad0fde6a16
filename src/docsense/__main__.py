import sys

from docsense.cli import main


sys.exit(main())
