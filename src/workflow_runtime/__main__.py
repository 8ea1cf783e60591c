"""Allow ``python -m workflow_runtime``."""
from .cli import main

main()
