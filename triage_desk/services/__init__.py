"""
Business Logic Services
"""
from .ticket_store import TicketStore
from .classifier import ClassifierAdapter
from .similarity import SimilarityRetriever
from .draft_workflow import DraftWorkflowEngine
from .draft_generator import DraftGenerator
from .qa_evaluator import QAEvaluator
from .pipeline import TriagePipeline
from .scheduler import BatchScheduler
from .freshdesk import FreshdeskClient

__all__ = [
    "TicketStore",
    "ClassifierAdapter",
    "SimilarityRetriever",
    "DraftWorkflowEngine",
    "DraftGenerator",
    "QAEvaluator",
    "TriagePipeline",
    "BatchScheduler",
    "FreshdeskClient",
]
