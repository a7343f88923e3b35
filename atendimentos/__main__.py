import sys

from atendimentos.cli import main

sys.exit(main())
