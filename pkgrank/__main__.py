import sys

from pkgrank.cli import main

sys.exit(main())
