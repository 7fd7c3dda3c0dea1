"""Job application ledger: classify inbox emails and merge them into a deduplicated tracker."""

__version__ = "0.1.0"
