"""Backing collection of one mapped class.

Provides ``Collection``, which runs the count and list queries of the
resources getter against an ``async_sessionmaker``, and ``compile_where``,
which turns the nested where structure described in
``panel_adapter.query.base`` into a SQLAlchemy expression.

Usage:
    from panel_adapter.adapters.collection import Collection

    collection = Collection(
        Article,
        session_factory,
        scopes={"published": lambda stmt: stmt.where(Article.published.is_(True))},
    )
    total = await collection.unscoped().count(QueryOptions(where={"title": "Hello"}))
"""

from collections.abc import Callable
from typing import Any

from sqlalchemy import Select, and_, false, func, or_, select, true
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.elements import ColumnElement

from panel_adapter.query.base import AND, OR, QueryOptions, split_association_key

ScopeFunction = Callable[[Select], Select]


class UnknownScopeError(KeyError):
    """Raised when a segment names a scope the collection does not define."""

    pass


# ============================================================================
# Where compilation
# ============================================================================


def _all(clauses: list[ColumnElement]) -> ColumnElement:
    if not clauses:
        return true()
    if len(clauses) == 1:
        return clauses[0]
    return and_(*clauses)


def _any(clauses: list[ColumnElement]) -> ColumnElement:
    if not clauses:
        return false()
    if len(clauses) == 1:
        return clauses[0]
    return or_(*clauses)


def _compile_value(column: Any, value: Any) -> ColumnElement:
    """Compile the condition value applied to one column."""
    if value is None:
        return column.is_(None)
    if isinstance(value, (list, tuple)):
        return column.in_(value)
    if not isinstance(value, dict):
        return column == value

    clauses = []
    for operator, operand in value.items():
        if operator == "$eq":
            clauses.append(column.is_(None) if operand is None else column == operand)
        elif operator == "$ne":
            clauses.append(column.is_not(None) if operand is None else column != operand)
        elif operator == "$gt":
            clauses.append(column > operand)
        elif operator == "$gte":
            clauses.append(column >= operand)
        elif operator == "$lt":
            clauses.append(column < operand)
        elif operator == "$lte":
            clauses.append(column <= operand)
        elif operator == "$like":
            clauses.append(column.like(operand))
        elif operator == "$notLike":
            clauses.append(column.not_like(operand))
        elif operator == "$ilike":
            clauses.append(column.ilike(operand))
        elif operator == "$in":
            clauses.append(column.in_(operand))
        elif operator == "$notIn":
            clauses.append(column.not_in(operand))
        elif operator == OR:
            clauses.append(_any([_compile_value(column, item) for item in operand]))
        elif operator == AND:
            clauses.append(_all([_compile_value(column, item) for item in operand]))
        else:
            raise ValueError(f"Unsupported operator '{operator}' on {column}")
    return _all(clauses)


def _compile_field(model: type, key: str, value: Any) -> ColumnElement:
    mapper = sa_inspect(model)
    path = split_association_key(key)

    if path is None:
        if key not in mapper.column_attrs:
            raise ValueError(f"Unknown field '{key}' on model {model.__name__}")
        return _compile_value(getattr(model, key), value)

    association, field_name = path
    if association not in mapper.relationships:
        raise ValueError(f"Unknown association '{association}' on model {model.__name__}")
    relationship = mapper.relationships[association]
    target = relationship.mapper
    if field_name not in target.column_attrs:
        raise ValueError(f"Unknown field '{field_name}' on model {target.class_.__name__}")

    condition = _compile_value(getattr(target.class_, field_name), value)
    attribute = getattr(model, association)
    if relationship.uselist:
        return attribute.any(condition)
    return attribute.has(condition)


def compile_where(model: type, where: Any) -> ColumnElement | None:
    """Compile a nested where structure into a SQLAlchemy expression.

    Args:
        model: Mapped class the condition applies to.
        where: ``None``, a list (conjunction), a dict of combinators and
            field conditions, or an already built SQLAlchemy expression.

    Returns:
        The expression, or None when ``where`` is None.

    Raises:
        ValueError: On unknown fields, associations or operators.

    Example:
        >>> str(compile_where(User, {"$or": [{"age": 18}, {"age": 21}]}))
        'users.age = :age_1 OR users.age = :age_2'
    """
    if where is None:
        return None
    if isinstance(where, ColumnElement):
        return where
    if isinstance(where, (list, tuple)):
        return _all([c for c in (compile_where(model, item) for item in where) if c is not None])

    clauses = []
    for key, value in where.items():
        if key == AND:
            clauses.append(compile_where(model, list(value)))
        elif key == OR:
            clauses.append(
                _any([c for c in (compile_where(model, item) for item in value) if c is not None])
            )
        else:
            clauses.append(_compile_field(model, key, value))
    return _all(clauses)


# ============================================================================
# Collection
# ============================================================================


class Collection:
    """Count and list access to one mapped class.

    Each query opens its own session from ``session_factory`` so that the
    count and the list of one request can run concurrently.

    Args:
        model: Declarative mapped class.
        session_factory: ``async_sessionmaker`` producing ``AsyncSession``.
        scopes: Named scopes, each a function refining a ``select()``.
        default_scope: Scope applied unless ``unscoped()`` or ``scope()``
            is used.
    """

    def __init__(
        self,
        model: type,
        session_factory: async_sessionmaker,
        scopes: dict[str, ScopeFunction] | None = None,
        default_scope: ScopeFunction | None = None,
    ) -> None:
        self.model = model
        self._session_factory = session_factory
        self._scopes: dict[str, ScopeFunction] = dict(scopes or {})
        self._default_scope = default_scope
        self._active_scope: ScopeFunction | None = default_scope

    @property
    def name(self) -> str:
        return self.model.__name__

    def _with_scope(self, scope: ScopeFunction | None) -> "Collection":
        collection = Collection(
            self.model,
            self._session_factory,
            scopes=self._scopes,
            default_scope=self._default_scope,
        )
        collection._active_scope = scope
        return collection

    def scope(self, name: str) -> "Collection":
        """Return a copy restricted by the named scope (replacing the default)."""
        if name not in self._scopes:
            raise UnknownScopeError(
                f"Scope '{name}' is not defined on {self.name}. "
                f"Available scopes: {', '.join(self._scopes) or '(none)'}"
            )
        return self._with_scope(self._scopes[name])

    def unscoped(self) -> "Collection":
        """Return a copy that bypasses every scope, including the default one."""
        return self._with_scope(None)

    def _statement(self, options: QueryOptions) -> Select:
        stmt = select(self.model)
        if self._active_scope is not None:
            stmt = self._active_scope(stmt)

        clause = compile_where(self.model, options.where)
        if clause is not None:
            stmt = stmt.where(clause)
        return stmt

    async def count(self, options: QueryOptions) -> int:
        """Count the records matching ``options.where``, ignoring pagination."""
        subquery = self._statement(options).subquery()
        stmt = select(func.count()).select_from(subquery)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one()

    async def find_all(self, options: QueryOptions) -> list[Any]:
        """Return one page of records with their included relationships loaded."""
        stmt = self._statement(options)
        mapper = sa_inspect(self.model)

        for include in options.include:
            stmt = stmt.options(selectinload(getattr(self.model, include)))

        for field_name, direction in options.order or []:
            if "." in field_name:
                association, target_field = field_name.split(".", 1)
                target = mapper.relationships[association].mapper.class_
                stmt = stmt.outerjoin(getattr(self.model, association))
                column = getattr(target, target_field)
            else:
                column = getattr(self.model, field_name)
            stmt = stmt.order_by(column.desc() if direction == "DESC" else column.asc())

        if options.offset:
            stmt = stmt.offset(options.offset)
        if options.limit is not None:
            stmt = stmt.limit(options.limit)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().unique().all())
