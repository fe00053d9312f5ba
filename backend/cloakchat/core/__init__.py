"""Core module - context assembly, summarization, sync and the session store."""

from .chat_service import ChatService, ChatTurn
from .chat_store import ChatStore, DeleteReceipt
from .context_assembler import AssembledContext, ContextAssembler
from .reconciler import ReconcileResult, merge_backup, reconcile
from .summarizer import Summarizer
from .token_estimator import HeuristicTokenEstimator, TiktokenEstimator, TokenEstimator

__all__ = [
    'ChatService',
    'ChatTurn',
    'ChatStore',
    'DeleteReceipt',
    'AssembledContext',
    'ContextAssembler',
    'ReconcileResult',
    'merge_backup',
    'reconcile',
    'Summarizer',
    'HeuristicTokenEstimator',
    'TiktokenEstimator',
    'TokenEstimator',
]
