from .faults import (
    AbandonedResultError,
    ConcurrentMutationError,
    MutationGuard,
    ScopeFault,
    ScopeMisuseError,
)
from .oneshot import Canceled, Receiver, Sender, channel
from .scope import PollState, Scope, ScopePoll, ensure_coroutine
from .scope_body import ScopeBody, async_scope
from .spawned import Outcome, Spawned
from .task_registry import Context, RegistryPoll, TaskRegistry

__all__ = [
    "AbandonedResultError",
    "Canceled",
    "ConcurrentMutationError",
    "Context",
    "MutationGuard",
    "Outcome",
    "PollState",
    "Receiver",
    "RegistryPoll",
    "Scope",
    "ScopeBody",
    "ScopeFault",
    "ScopeMisuseError",
    "ScopePoll",
    "Sender",
    "Spawned",
    "TaskRegistry",
    "async_scope",
    "channel",
    "ensure_coroutine",
]
