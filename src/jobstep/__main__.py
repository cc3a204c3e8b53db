import sys

from jobstep.presentation.cli import main

sys.exit(main())
