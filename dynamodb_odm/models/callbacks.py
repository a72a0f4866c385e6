"""
Lifecycle callbacks for documents.

Callbacks are instance methods marked with one of the decorators below:

    class User(Document):
        @before_save
        def normalize_name(self):
            self.name = self.name.strip()

        @around_create
        def audit(self, proceed):
            log("creating")
            proceed()
            log("created")

Each phase (validation, save, create, update, destroy, commit, rollback)
holds ordered before/around/after chains collected per model class at
declaration time, parents first. A before callback halts its phase by
raising ``Abort``. An around callback that never calls ``proceed`` also
halts it. In both cases ``run_callbacks`` returns False and the after
callbacks do not run. Exceptions other than ``Abort`` propagate unchanged.
"""

from typing import Callable, Dict, List, Optional

PHASES = ('validation', 'save', 'create', 'update', 'destroy', 'commit', 'rollback')
TIMINGS = ('before', 'around', 'after')


class Abort(Exception):
    """Raised by a callback to halt the current phase."""


class CallbackChain:
    """Before, around and after handlers of one phase."""

    def __init__(self):
        self.before: List[Callable] = []
        self.around: List[Callable] = []
        self.after: List[Callable] = []

    def copy(self) -> 'CallbackChain':
        chain = CallbackChain()
        chain.before = list(self.before)
        chain.around = list(self.around)
        chain.after = list(self.after)
        return chain

    def add(self, timing: str, handler: Callable) -> None:
        getattr(self, timing).append(handler)


def _marker(timing: str, phase: str) -> Callable[[Callable], Callable]:
    def decorator(method: Callable) -> Callable:
        hooks = list(getattr(method, '_callback_hooks', ()))
        hooks.append((timing, phase))
        method._callback_hooks = hooks
        return method
    decorator.__name__ = f"{timing}_{phase}"
    return decorator


before_validation = _marker('before', 'validation')
around_validation = _marker('around', 'validation')
after_validation = _marker('after', 'validation')

before_save = _marker('before', 'save')
around_save = _marker('around', 'save')
after_save = _marker('after', 'save')

before_create = _marker('before', 'create')
around_create = _marker('around', 'create')
after_create = _marker('after', 'create')

before_update = _marker('before', 'update')
around_update = _marker('around', 'update')
after_update = _marker('after', 'update')

before_destroy = _marker('before', 'destroy')
around_destroy = _marker('around', 'destroy')
after_destroy = _marker('after', 'destroy')

after_commit = _marker('after', 'commit')
after_rollback = _marker('after', 'rollback')


def collect_callbacks(cls) -> Dict[str, CallbackChain]:
    """Build the per-phase chains for ``cls`` from decorated methods in its MRO.

    A subclass method overriding a decorated method of the same name replaces
    it in place rather than adding a second handler.
    """
    methods: Dict[str, Callable] = {}
    for klass in reversed(cls.__mro__):
        for name, value in vars(klass).items():
            if getattr(value, '_callback_hooks', None):
                methods[name] = value
            elif name in methods:
                del methods[name]

    chains = {phase: CallbackChain() for phase in PHASES}
    for method in methods.values():
        for timing, phase in method._callback_hooks:
            chains[phase].add(timing, method)
    return chains


class CallbacksMixin:
    """Runs the callback chains built by ``collect_callbacks``."""

    _callback_chains: Dict[str, CallbackChain] = {}

    @classmethod
    def register_callback(cls, timing: str, phase: str, handler: Callable) -> None:
        """Append ``handler`` (called with the instance) to a chain of this class.

        Example:
            User.register_callback('after', 'commit', lambda user: events.append(user.id))
        """
        if phase not in PHASES or timing not in TIMINGS:
            raise ValueError(f"Unknown callback {timing}_{phase}")
        chains = {name: chain.copy() for name, chain in cls._callback_chains.items()}
        chains[phase].add(timing, handler)
        cls._callback_chains = chains

    def run_callbacks(self, phase: str, block: Optional[Callable[[], object]] = None) -> bool:
        """Run ``block`` wrapped in the callbacks of ``phase``.

        A block returning False counts as halted, so nested phases propagate
        an abort outwards.

        Returns:
            True when the phase completed, False when it was halted
        """
        chain = self._callback_chains[phase]
        completed = False

        def inner():
            nonlocal completed
            result = block() if block is not None else None
            completed = result is not False

        try:
            for handler in chain.before:
                handler(self)

            call = inner
            for handler in reversed(chain.around):
                call = _wrap(handler, self, call)
            call()
        except Abort:
            return False

        if not completed:
            return False

        for handler in chain.after:
            handler(self)
        return True


def _wrap(handler: Callable, instance, proceed: Callable) -> Callable:
    return lambda: handler(instance, proceed)
