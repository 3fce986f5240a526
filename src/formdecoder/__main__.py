import sys

from formdecoder.cli import main

sys.exit(main())
