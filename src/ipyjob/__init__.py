"""
Notebook-aware execution of code against Jupyter kernels.

ipyjob takes inline code, Jupyter notebooks or Zeppelin notes, runs the
contained code units one after the other on a (possibly remote) kernel and
reports a single pass/fail verdict together with the captured output.

## Modules:

- `ipyjob.core`: Data model, error taxonomy and the execution orchestrator.
- `ipyjob.parsing`: Conversion of source documents into code units.
- `ipyjob.interpreter`: Kernel sessions and artifact storage.
- `ipyjob.infrastructure`: Configuration and logging.
- `ipyjob.job`: The adapter used by job systems to trigger runs.
- `ipyjob.cli`: The command line interface.
"""

__version__ = "0.3.0"
