"""
Node Deployment Module

Architectural Intent:
- NodeDeployment aggregate is the consistency boundary for one node run
- State transitions are enforced by domain methods against an explicit table
- All state changes produce new instances to ensure auditability
- Every transition records a domain event, so the step order can be replayed

State Machine:
    CONNECTING -> HASHING -> COPYING -> BUILDING -> LINKING -> SUCCEEDED
    CONNECTING -> CONNECTION_FAILED
    HASHING | COPYING | BUILDING -> FAILED_NO_ROLLBACK
    COPYING | BUILDING -> ROLLING_BACK -> FAILED_WITH_ROLLBACK
"""

from __future__ import annotations
from enum import Enum, auto
from typing import Optional
from henix.domain.errors import InvalidTransitionError, describe_error
from henix.domain.events.event_base import DomainEvent
from henix.domain.events.node_events import (
    NodeDeploymentFailedEvent,
    NodeRollbackFailedEvent,
    NodeStateChangedEvent,
)
from henix.domain.value_objects.config_hash import ConfigHash
from henix.domain.value_objects.deployment_result import (
    DeploymentOutcome,
    DeploymentResult,
)
from henix.domain.value_objects.node_target import NodeTarget


class NodeDeploymentState(Enum):
    CONNECTING = auto()
    HASHING = auto()
    COPYING = auto()
    BUILDING = auto()
    LINKING = auto()
    ROLLING_BACK = auto()
    SUCCEEDED = auto()
    FAILED_WITH_ROLLBACK = auto()
    FAILED_NO_ROLLBACK = auto()
    CONNECTION_FAILED = auto()


_S = NodeDeploymentState

_TRANSITIONS: dict[NodeDeploymentState, frozenset[NodeDeploymentState]] = {
    _S.CONNECTING: frozenset({_S.HASHING, _S.CONNECTION_FAILED}),
    _S.HASHING: frozenset({_S.COPYING, _S.FAILED_NO_ROLLBACK}),
    _S.COPYING: frozenset({_S.BUILDING, _S.ROLLING_BACK, _S.FAILED_NO_ROLLBACK}),
    _S.BUILDING: frozenset({_S.LINKING, _S.ROLLING_BACK, _S.FAILED_NO_ROLLBACK}),
    _S.LINKING: frozenset({_S.SUCCEEDED}),
    _S.ROLLING_BACK: frozenset({_S.FAILED_WITH_ROLLBACK}),
}

_TERMINAL_OUTCOMES = {
    _S.SUCCEEDED: DeploymentOutcome.SUCCEEDED,
    _S.FAILED_WITH_ROLLBACK: DeploymentOutcome.FAILED_WITH_ROLLBACK,
    _S.FAILED_NO_ROLLBACK: DeploymentOutcome.FAILED_NO_ROLLBACK,
    _S.CONNECTION_FAILED: DeploymentOutcome.CONNECTION_FAILED,
}


class NodeDeployment:
    __slots__ = (
        "_target",
        "_state",
        "_config_hash",
        "_error",
        "_rollback_error",
        "_domain_events",
    )

    def __init__(
        self,
        target: NodeTarget,
        state: NodeDeploymentState = NodeDeploymentState.CONNECTING,
        config_hash: Optional[ConfigHash] = None,
        error: Optional[BaseException] = None,
        rollback_error: Optional[BaseException] = None,
        domain_events: tuple[DomainEvent, ...] = (),
    ):
        self._target = target
        self._state = state
        self._config_hash = config_hash
        self._error = error
        self._rollback_error = rollback_error
        self._domain_events = domain_events

    @property
    def target(self) -> NodeTarget:
        return self._target

    @property
    def state(self) -> NodeDeploymentState:
        return self._state

    @property
    def config_hash(self) -> Optional[ConfigHash]:
        return self._config_hash

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def rollback_error(self) -> Optional[BaseException]:
        return self._rollback_error

    @property
    def domain_events(self) -> tuple[DomainEvent, ...]:
        return self._domain_events

    @property
    def is_terminal(self) -> bool:
        return self._state in _TERMINAL_OUTCOMES

    def _transition(
        self,
        new_state: NodeDeploymentState,
        extra_events: tuple[DomainEvent, ...] = (),
        **changes,
    ) -> "NodeDeployment":
        if new_state not in _TRANSITIONS.get(self._state, frozenset()):
            raise InvalidTransitionError(
                f"Node `{self._target.name}` cannot go from "
                f"{self._state.name} to {new_state.name}"
            )
        fields = {
            "target": self._target,
            "config_hash": self._config_hash,
            "error": self._error,
            "rollback_error": self._rollback_error,
        }
        fields.update(changes)
        event = NodeStateChangedEvent(
            aggregate_id=self._target.name,
            previous_state=self._state.name,
            new_state=new_state.name,
        )
        return NodeDeployment(
            state=new_state,
            domain_events=self._domain_events + extra_events + (event,),
            **fields,
        )

    def start_hashing(self) -> "NodeDeployment":
        return self._transition(NodeDeploymentState.HASHING)

    def start_copying(self, config_hash: ConfigHash) -> "NodeDeployment":
        return self._transition(NodeDeploymentState.COPYING, config_hash=config_hash)

    def start_building(self) -> "NodeDeployment":
        return self._transition(NodeDeploymentState.BUILDING)

    def start_linking(self) -> "NodeDeployment":
        return self._transition(NodeDeploymentState.LINKING)

    def succeed(self) -> "NodeDeployment":
        return self._transition(NodeDeploymentState.SUCCEEDED)

    def connection_failed(self, error: BaseException) -> "NodeDeployment":
        return self._transition(
            NodeDeploymentState.CONNECTION_FAILED,
            extra_events=(self._failed_event(error),),
            error=error,
        )

    def fail(self, error: BaseException) -> "NodeDeployment":
        return self._transition(
            NodeDeploymentState.FAILED_NO_ROLLBACK,
            extra_events=(self._failed_event(error),),
            error=error,
        )

    def start_rollback(self, error: BaseException) -> "NodeDeployment":
        return self._transition(
            NodeDeploymentState.ROLLING_BACK,
            extra_events=(self._failed_event(error),),
            error=error,
        )

    def finish_rollback(
        self, rollback_error: Optional[BaseException] = None
    ) -> "NodeDeployment":
        extra: tuple[DomainEvent, ...] = ()
        if rollback_error is not None:
            extra = (
                NodeRollbackFailedEvent(
                    aggregate_id=self._target.name,
                    error_message=describe_error(rollback_error),
                ),
            )
        # The original error is kept; a rollback failure never replaces it
        return self._transition(
            NodeDeploymentState.FAILED_WITH_ROLLBACK,
            extra_events=extra,
            rollback_error=rollback_error,
        )

    def _failed_event(self, error: BaseException) -> NodeDeploymentFailedEvent:
        return NodeDeploymentFailedEvent(
            aggregate_id=self._target.name,
            failed_state=self._state.name,
            error_message=describe_error(error),
        )

    def result(self) -> DeploymentResult:
        if not self.is_terminal:
            raise InvalidTransitionError(
                f"Node `{self._target.name}` has not finished (state {self._state.name})"
            )
        return DeploymentResult(
            node=self._target.name,
            outcome=_TERMINAL_OUTCOMES[self._state],
            error=self._error,
            rollback_error=self._rollback_error,
            config_hash=str(self._config_hash) if self._config_hash else None,
        )

    def __repr__(self) -> str:
        return (
            f"NodeDeployment(target={self._target.name}, state={self._state.name}, "
            f"config_hash={self._config_hash}, error={self._error!r})"
        )
