"""Declarative rule documents (JSON-friendly), validated with pydantic.

Document shape::

    {
      "rules": [
        {
          "name": "block_if_country_mismatch",
          "salience": 10,
          "when": [
            {"kind": "payment", "fields": {"id": "$payment_id", "user_id": "$uid",
                                           "country": "$pay_country"}},
            {"kind": "user", "fields": {"id": "$uid", "country": "$user_country"},
             "where": [["ne", "$pay_country", "$user_country"]]}
          ],
          "then": [
            {"op": "assert", "fact": {"kind": "decision", "payment_id": "$payment_id",
                                      "status": "blocked"}}
          ]
        }
      ]
    }

``"$name"`` in ``fields`` binds a variable, ``"_"`` matches any value, and in
``then`` templates ``"$name"`` is replaced by the bound value.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any, Literal, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from symrule.authoring.conditions import (
    compile_conditions,
    condition_variables,
    is_var_ref,
    unescape,
    validate_condition,
    var_name,
)
from symrule.authoring.patterns import ANY, Var, pattern, pattern_variables
from symrule.engine.actions import ActionContext
from symrule.errors import RuleDefinitionError
from symrule.ir.effects import Assert, Emit, Log, Retract, Set, Upsert
from symrule.ir.types import Rule


WILDCARD = "_"


class PatternSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    kind: Optional[str] = None
    field_terms: dict[str, Any] = Field(default_factory=dict, alias="fields")
    where: list[list[Any]] = Field(default_factory=list)
    bind: Optional[str] = None

    @field_validator("where")
    @classmethod
    def _validate_where(cls, value: list[list[Any]]) -> list[list[Any]]:
        for atom in value:
            try:
                validate_condition(atom)
            except RuleDefinitionError as exc:
                raise ValueError(str(exc)) from exc
        return value

    @field_validator("bind")
    @classmethod
    def _validate_bind(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.isidentifier():
            raise ValueError("bind must be an identifier")
        return value


class AssertSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")
    op: Literal["assert"]
    fact: Any


class RetractSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")
    op: Literal["retract"]
    fact: Any


class UpsertSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")
    op: Literal["upsert"]
    fact: Any


class EmitSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")
    op: Literal["emit"]
    name: str = Field(min_length=1)
    payload: Any = None


class LogSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")
    op: Literal["log"]
    level: str = "info"
    message: str


class SetSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")
    op: Literal["set"]
    key: str = Field(min_length=1)
    value: Any = None


EffectSpec = Annotated[
    Union[AssertSpec, RetractSpec, UpsertSpec, EmitSpec, LogSpec, SetSpec],
    Field(discriminator="op"),
]


class RuleSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    when: list[PatternSpec] = Field(min_length=1)
    then: list[EffectSpec] = Field(default_factory=list)
    salience: int = 0
    once: bool = False
    mode: Optional[Literal["once", "per_fact"]] = None
    throttle: Any = None


class RuleBookSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rules: list[RuleSpec] = Field(default_factory=list)


def parse_rulebook(data: Any) -> RuleBookSpec:
    """Validate a rule document: ``{"rules": [...]}``, a list of rules, or one rule."""
    try:
        if isinstance(data, RuleBookSpec):
            return data
        if isinstance(data, RuleSpec):
            return RuleBookSpec(rules=[data])
        if isinstance(data, Mapping) and "rules" in data:
            return RuleBookSpec.model_validate(data)
        if isinstance(data, Mapping):
            return RuleBookSpec(rules=[RuleSpec.model_validate(data)])
        if isinstance(data, Sequence) and not isinstance(data, (str, bytes)):
            return RuleBookSpec.model_validate({"rules": list(data)})
    except ValidationError as exc:
        raise RuleDefinitionError(f"Invalid rule document: {exc}") from exc
    raise RuleDefinitionError(f"Unsupported rule document type: {type(data).__name__}")


def load_rulebook(path: str | Path) -> list[Rule]:
    """Load and compile a JSON rule document."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RuleDefinitionError(f"Cannot read rule document {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise RuleDefinitionError(f"Rule document {path} is not valid JSON: {exc}") from exc
    return compile_rulebook(parse_rulebook(data))


def compile_rulebook(book: RuleBookSpec | Any) -> list[Rule]:
    book = parse_rulebook(book)
    return [compile_rule_spec(spec) for spec in book.rules]


def compile_rule_spec(spec: RuleSpec) -> Rule:
    patterns = []
    bound: set[str] = set()
    for index, pat in enumerate(spec.when):
        terms = _compile_terms(pat.field_terms)
        bound |= pattern_variables(terms)
        if pat.bind is not None:
            bound.add(pat.bind)
        missing = condition_variables(pat.where) - bound
        if missing:
            raise RuleDefinitionError(
                f"Rule '{spec.name}' pattern {index} conditions use unbound variables: "
                f"{sorted(missing)}"
            )
        patterns.append(
            pattern(pat.kind, terms, where=compile_conditions(pat.where), bind=pat.bind)
        )

    missing = set()
    for effect in spec.then:
        templates = effect.model_dump(exclude={"op", "name", "key", "level"})
        missing |= _template_variables(templates) - bound
    if missing:
        raise RuleDefinitionError(
            f"Rule '{spec.name}' effects use unbound variables: {sorted(missing)}"
        )

    return Rule(
        name=spec.name,
        patterns=patterns,
        action=_build_action(list(spec.then)),
        salience=spec.salience,
        once=spec.once,
        mode=spec.mode,
        throttle=spec.throttle,
    )


def _compile_terms(terms: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name, term in terms.items():
        if term == WILDCARD:
            out[name] = ANY
        elif is_var_ref(term):
            out[name] = Var(var_name(term))
        elif isinstance(term, Mapping):
            out[name] = _compile_terms(term)
        else:
            out[name] = unescape(term)
    return out


def _template_variables(value: Any) -> set[str]:
    if is_var_ref(value):
        return {var_name(value)}
    if isinstance(value, Mapping):
        names: set[str] = set()
        for item in value.values():
            names |= _template_variables(item)
        return names
    if isinstance(value, (list, tuple)):
        names = set()
        for item in value:
            names |= _template_variables(item)
        return names
    return set()


def render_template(value: Any, binding: Mapping[str, Any]) -> Any:
    """Substitute ``"$var"`` strings with bound values, recursively."""
    if is_var_ref(value):
        return binding[var_name(value)]
    if isinstance(value, Mapping):
        return {key: render_template(item, binding) for key, item in value.items()}
    if isinstance(value, list):
        return [render_template(item, binding) for item in value]
    return unescape(value)


def _build_action(effects: list[Any]):
    def action(ctx: ActionContext) -> ActionContext:
        for spec in effects:
            ctx = ctx.add(_render_effect(spec, ctx.binding))
        return ctx

    return action


def _render_effect(spec: Any, binding: Mapping[str, Any]):
    if isinstance(spec, AssertSpec):
        return Assert(render_template(spec.fact, binding))
    if isinstance(spec, RetractSpec):
        return Retract(render_template(spec.fact, binding))
    if isinstance(spec, UpsertSpec):
        return Upsert(render_template(spec.fact, binding))
    if isinstance(spec, EmitSpec):
        return Emit(spec.name, render_template(spec.payload, binding))
    if isinstance(spec, LogSpec):
        return Log(spec.level, str(render_template(spec.message, binding)))
    if isinstance(spec, SetSpec):
        return Set(spec.key, render_template(spec.value, binding))
    raise RuleDefinitionError(f"Unknown effect spec: {spec!r}")  # pragma: no cover
