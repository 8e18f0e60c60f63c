"""
Lifecycle events for mapped entities.

SQLAlchemy flush hooks are translated into ``LifecycleEvent`` objects and
handed to the observers registered for the entity's model class. Each
observer is called as ``observer(event, context)`` where ``context`` is the
AuditContext bound to the session doing the flush.

Prior values come from attribute history. A column assigned while expired
(the usual case right after a commit) has no history, so its persisted value
is read back in ``before_flush``. Deleted instances get their expired
columns loaded at the same point so the deletion snapshot is complete.

Nothing raised while building an event or running an observer reaches the
flush; it is logged as a warning instead.
"""
from __future__ import annotations

import enum
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy import event, inspect, select
from sqlalchemy.orm import Session, object_session

from services import audit_context

logger = logging.getLogger(__name__)

PRIOR_VALUES_KEY = 'lifecycle_prior_values'


class LifecycleAction(str, enum.Enum):
    CREATED = 'created'
    UPDATED = 'updated'
    DELETED = 'deleted'
    RESTORED = 'restored'


@dataclass(frozen=True)
class LifecycleEvent:
    """One transition of one entity, as seen right after it was flushed."""

    action: LifecycleAction
    entity: Any
    entity_id: Any
    current: dict = field(default_factory=dict)
    prior: dict = field(default_factory=dict)
    connection: Any = None

    @property
    def model(self) -> type:
        return type(self.entity)


Observer = Callable[[LifecycleEvent, 'audit_context.AuditContext'], None]

_observers: dict[type, list[tuple[frozenset, Observer]]] = {}
_watched: set[type] = set()
_lock = threading.Lock()


def supports_restore(model: type) -> bool:
    """True for models with soft delete semantics (see SoftDeleteMixin)."""
    return bool(getattr(model, '__soft_delete_column__', None))


def register_observer(model: type, observer: Observer, actions=None) -> None:
    """Call *observer* for *actions* (default: all) on *model* and its subclasses."""
    wanted = frozenset(LifecycleAction(action) for action in (actions or LifecycleAction))
    if LifecycleAction.RESTORED in wanted and not supports_restore(model):
        raise ValueError(f'{model.__name__} does not support restore.')
    with _lock:
        _observers.setdefault(model, []).append((wanted, observer))
        first_registration = model not in _watched
        _watched.add(model)
    if first_registration:
        _listen(model)


def observers_for(model: type, action: LifecycleAction) -> list[Observer]:
    found = []
    with _lock:
        for klass in model.__mro__:
            for wanted, observer in _observers.get(klass, ()):
                if action in wanted:
                    found.append(observer)
    return found


def is_watched(model: type) -> bool:
    return _nearest_watched(model) is not None


def _nearest_watched(model: type):
    for klass in model.__mro__:
        if klass in _watched:
            return klass
    return None


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

def column_keys(mapper) -> list[str]:
    return [prop.key for prop in mapper.column_attrs]


def current_snapshot(state) -> dict:
    """Loaded column values of *state*; unloaded columns are left out."""
    return {key: state.dict[key] for key in column_keys(state.mapper) if key in state.dict}


def prior_snapshot(state, fetched=None) -> dict:
    """Last persisted column values of *state*, as far as they are known."""
    fetched = fetched or {}
    prior = {}
    for key in column_keys(state.mapper):
        if key in fetched:
            prior[key] = fetched[key]
            continue
        history = state.attrs[key].history
        if history.deleted:
            prior[key] = history.deleted[0]
        elif history.unchanged:
            prior[key] = history.unchanged[0]
        elif history.added:
            prior[key] = None
    return prior


def changed_keys(current: dict, prior: dict) -> list[str]:
    return [key for key, value in current.items() if key not in prior or prior[key] != value]


def primary_key_of(state):
    mapper = state.mapper
    values = tuple(
        state.dict.get(mapper.get_property_by_column(column).key)
        for column in mapper.primary_key
    )
    # Expired instances keep their key only in the identity.
    if any(value is None for value in values) and state.identity is not None:
        values = tuple(state.identity)
    return values[0] if len(values) == 1 else values


# ---------------------------------------------------------------------------
# SQLAlchemy hooks
# ---------------------------------------------------------------------------

def _listen(model: type) -> None:
    def after_insert(mapper, connection, target):
        if _nearest_watched(type(target)) is not model:
            return
        with _contained(target, LifecycleAction.CREATED):
            state = inspect(target)
            _dispatch(LifecycleAction.CREATED, state, current_snapshot(state), {}, connection)

    def after_update(mapper, connection, target):
        if _nearest_watched(type(target)) is not model:
            return
        with _contained(target, LifecycleAction.UPDATED):
            state = inspect(target)
            current = current_snapshot(state)
            prior = prior_snapshot(state, _fetched_prior_values(state))
            for action in _update_actions(type(target), current, prior):
                _dispatch(action, state, current, prior, connection)

    def after_delete(mapper, connection, target):
        if _nearest_watched(type(target)) is not model:
            return
        with _contained(target, LifecycleAction.DELETED):
            state = inspect(target)
            _dispatch(LifecycleAction.DELETED, state, current_snapshot(state), {}, connection)

    event.listen(model, 'after_insert', after_insert, propagate=True)
    event.listen(model, 'after_update', after_update, propagate=True)
    event.listen(model, 'after_delete', after_delete, propagate=True)


@contextmanager
def _contained(target, action: LifecycleAction):
    """Log and drop any failure while turning a flush into events."""
    try:
        yield
    except Exception as exc:
        warn_failure(logger, type(target), _entity_id_or_none(target), action, exc)


def _entity_id_or_none(target):
    try:
        return primary_key_of(inspect(target))
    except Exception:
        return None


def warn_failure(log: logging.Logger, model: type, entity_id, action: LifecycleAction, exc: Exception) -> None:
    """Log *exc* as a warning carrying model, id, action and message."""
    name = f'{model.__module__}.{model.__qualname__}'
    log.warning(
        'Audit logging failed for %s #%s (%s): %s',
        name, entity_id, action.value, exc,
        extra={'context': {
            'model': name,
            'id': entity_id,
            'action': action.value,
            'message': str(exc),
        }},
    )


def _update_actions(model: type, current: dict, prior: dict) -> list[LifecycleAction]:
    column = getattr(model, '__soft_delete_column__', None)
    if column and column in changed_keys(current, prior):
        if prior.get(column) is None:
            return [LifecycleAction.DELETED]
        if current.get(column) is None:
            return [LifecycleAction.UPDATED, LifecycleAction.RESTORED]
    return [LifecycleAction.UPDATED]


def _dispatch(action, state, current, prior, connection) -> None:
    observers = observers_for(state.class_, action)
    if not observers:
        return
    lifecycle_event = LifecycleEvent(
        action=action,
        entity=state.obj(),
        entity_id=primary_key_of(state),
        current=current,
        prior=prior,
        connection=connection,
    )
    context = audit_context.current(object_session(lifecycle_event.entity))
    for observer in observers:
        # One broken observer must not starve the rest.
        try:
            observer(lifecycle_event, context)
        except Exception as exc:
            warn_failure(logger, lifecycle_event.model, lifecycle_event.entity_id, action, exc)


def _fetched_prior_values(state) -> dict:
    session = state.session
    if session is None:
        return {}
    return session.info.get(PRIOR_VALUES_KEY, {}).get(state, {})


def _prior_unknown(state, key: str) -> bool:
    history = state.attrs[key].history
    return bool(history.added) and not history.deleted


def _read_persisted(session, state, keys: list[str]) -> dict:
    mapper = state.mapper
    if state.identity is None:
        return {}
    stmt = select(*[getattr(mapper.class_, key) for key in keys]).where(
        *[column == value for column, value in zip(mapper.primary_key, state.identity)]
    )
    with session.no_autoflush:
        row = session.execute(stmt).first()
    if row is None:
        return {}
    return dict(zip(keys, row))


def _load_expired_columns(state) -> None:
    unloaded = state.unloaded
    for key in column_keys(state.mapper):
        if key in unloaded:
            getattr(state.obj(), key)


@event.listens_for(Session, 'before_flush')
def _capture_prior_values(session, flush_context, instances):
    captured = {}
    for target in session.dirty:
        if not is_watched(type(target)):
            continue
        state = inspect(target)
        unknown = [key for key in column_keys(state.mapper) if _prior_unknown(state, key)]
        try:
            if unknown:
                captured[state] = _read_persisted(session, state, unknown)
            # Restore and soft delete snapshots need every column.
            if supports_restore(state.class_):
                _load_expired_columns(state)
        except Exception as exc:
            logger.warning('Could not read prior values of %s: %s', state.class_.__name__, exc)
    for target in session.deleted:
        if not is_watched(type(target)):
            continue
        try:
            _load_expired_columns(inspect(target))
        except Exception as exc:
            logger.warning('Could not load %s before delete: %s', type(target).__name__, exc)
    session.info[PRIOR_VALUES_KEY] = captured


@event.listens_for(Session, 'after_flush_postexec')
def _forget_prior_values(session, flush_context):
    session.info.pop(PRIOR_VALUES_KEY, None)
