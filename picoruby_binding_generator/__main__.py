import sys

from .generate_bindings import main

sys.exit(main())
