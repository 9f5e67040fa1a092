"""Core module for the pairchat application."""

from .outcomes import ProcedureOutcome
from .types import APIResponse, FirestoreDocument

__all__ = ["FirestoreDocument", "APIResponse", "ProcedureOutcome"]
