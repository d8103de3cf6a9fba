"""
Entry point for running EaaS as a module.

Usage:
    python -m eaas run --config job.yaml
    python -m eaas sample-config --path job.yaml
    python -m eaas list-jobs
"""

from .cli import main

if __name__ == "__main__":
    exit(main())
