from ._check import Assumption, RefutationCheck, RefutationReport
from .matching import MatchingRefutationReport

__all__ = ["Assumption", "RefutationCheck", "RefutationReport", "MatchingRefutationReport"]
