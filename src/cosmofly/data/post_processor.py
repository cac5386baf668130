# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Post-processor that wires derived query methods onto CosmosRepository beans.

Stub methods are parsed when the repository is registered, so a malformed
method name raises :class:`~cosmofly.kernel.exceptions.MalformedDescriptorException`
at startup rather than on first call.
"""

from __future__ import annotations

import functools
import inspect
from typing import Any, get_type_hints

import structlog

from cosmofly.config.properties.cosmos import CosmosProperties
from cosmofly.data.assembler import DerivedQuery, DerivedQueryCache
from cosmofly.data.mapping import PropertyResolver, TypeHintPropertyResolver
from cosmofly.data.query_parser import ArgumentShape
from cosmofly.data.repository import CosmosRepository
from cosmofly.kernel.exceptions import MalformedDescriptorException, UnknownPropertyException

logger = structlog.get_logger(__name__)

# Prefixes that indicate a derived query method.
DERIVED_PREFIXES = ("find_by_", "read_by_", "query_by_", "count_by_", "exists_by_", "delete_by_", "remove_by_")


class CosmosRepositoryPostProcessor:
    """Replaces stub methods on :class:`CosmosRepository` subclasses with real query implementations.

    For each derived query stub, the declared parameters are turned into
    :class:`ArgumentShape` objects from their annotations, the method name is
    parsed against them and the bound implementation delegates to
    :meth:`CosmosTemplate.execute`.
    """

    def __init__(
        self,
        cache: DerivedQueryCache | None = None,
        properties: CosmosProperties | None = None,
        resolver: PropertyResolver | None = None,
    ) -> None:
        maxsize = (properties or CosmosProperties()).query_cache_size
        self._cache = cache or DerivedQueryCache(maxsize=maxsize)
        self._resolver = resolver or TypeHintPropertyResolver()

    def before_init(self, bean: Any, bean_name: str) -> Any:
        return bean

    def after_init(self, bean: Any, bean_name: str) -> Any:
        if not isinstance(bean, CosmosRepository):
            return bean

        cls = type(bean)

        # Collect names defined on the base repository class so we never
        # replace them.
        base_names = set(dir(CosmosRepository))
        wired = 0

        for attr_name in list(vars(cls)):
            if attr_name.startswith("_") or attr_name in base_names:
                continue

            attr = getattr(cls, attr_name, None)
            if attr is None or not callable(attr):
                continue

            if any(attr_name.startswith(prefix) for prefix in DERIVED_PREFIXES) and self._is_stub(attr):
                signature, shapes = self._argument_shapes(attr)
                try:
                    derived = self._cache.get(attr_name, shapes)
                except MalformedDescriptorException as exc:
                    exc.context.setdefault("repository", cls.__name__)
                    raise
                self._check_properties(derived, bean._model, cls.__name__, attr_name)
                wrapper = self._wrap_derived_method(attr, derived, signature)
                setattr(bean, attr_name, wrapper.__get__(bean, cls))
                wired += 1

        logger.debug("repository_wired", repository=cls.__name__, bean=bean_name, methods=wired)
        return bean

    def _check_properties(self, derived: DerivedQuery, entity: type, repository: str, method: str) -> None:
        """Resolve every clause and order property against *entity* so typos fail at registration."""
        paths = [clause.property_path for clause in derived.parsed.clauses]
        paths += [order.property for order in derived.parsed.order_clauses]
        for path in paths:
            try:
                self._resolver.resolve(entity, path)
            except UnknownPropertyException as exc:
                exc.context.setdefault("repository", repository)
                exc.context.setdefault("method", method)
                raise

    # ------------------------------------------------------------------
    # Argument shapes
    # ------------------------------------------------------------------

    @staticmethod
    def _argument_shapes(method: Any) -> tuple[inspect.Signature, list[ArgumentShape]]:
        """Build shapes from the stub's parameters (excluding ``self``)."""
        signature = inspect.signature(method)
        params = list(signature.parameters.values())[1:]
        try:
            hints = get_type_hints(method)
        except (NameError, TypeError):
            hints = {}

        shapes = [ArgumentShape.from_annotation(p.name, hints.get(p.name, p.annotation)) for p in params]
        return signature.replace(parameters=params), shapes

    # ------------------------------------------------------------------
    # Wrapper factories
    # ------------------------------------------------------------------

    @staticmethod
    def _wrap_derived_method(stub: Any, derived: DerivedQuery, signature: inspect.Signature) -> Any:
        """Wrap *derived* so calls bind their arguments and run through the bean's template."""

        @functools.wraps(stub)
        async def wrapper(self_arg: Any, *args: Any, **kwargs: Any) -> Any:
            bound = signature.bind(*args, **kwargs)
            bound.apply_defaults()
            return await self_arg.template.execute(derived, self_arg._model, list(bound.arguments.values()))

        return wrapper

    # ------------------------------------------------------------------
    # Stub detection
    # ------------------------------------------------------------------

    @staticmethod
    def _is_stub(method: Any) -> bool:
        """Return ``True`` if *method* appears to be a stub (body is ``...`` or ``pass``).

        A method is considered a stub when its code object contains no
        meaningful constants beyond ``None``, ``Ellipsis`` and its docstring.
        """
        func = method
        if isinstance(func, (staticmethod, classmethod)):
            func = func.__func__
        if hasattr(func, "__wrapped__"):
            func = func.__wrapped__

        code = getattr(func, "__code__", None)
        if code is None:
            return False

        consts = set(code.co_consts)
        consts.discard(None)
        consts.discard(Ellipsis)
        consts.discard(func.__doc__)

        return len(consts) == 0 and code.co_code is not None
