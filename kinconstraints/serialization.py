"""Save and restore constraints as versioned JSON archives.

An archive stores the data of a constraint (comparison types, mask,
right-hand side, segments) and refers to functions and spaces by name.
Restoring an archive requires a mapping from those names to the actual
objects, since functions hold code and robot models.

Example:
    >>> text = dumps(constraint)
    >>> restored = loads(text, {"grasp": grasp_function, "robot(nq=13, nv=12)": space})
"""

from __future__ import annotations

import re
from typing import List, Literal, Mapping, Optional, Tuple, Union

import numpy as np
from pydantic import BaseModel, Field, ValidationError
from typing_extensions import Annotated

from . import constants as consts
from .comparison import ComparisonType
from .constraints import Explicit, Implicit
from .exceptions import SerializationError
from .function import DifferentiableFunction
from .lie import CartesianProduct, LieGroupSpace, SO2Space


class ImplicitRecord(BaseModel):
    kind: Literal["implicit"] = "implicit"
    function: str
    comparison_type: List[ComparisonType]
    mask: List[bool]
    right_hand_side: List[float]


class ExplicitRecord(BaseModel):
    kind: Literal["explicit"] = "explicit"
    configuration_space: str
    explicit_function: str
    comparison_type: List[ComparisonType]
    mask: List[bool]
    right_hand_side: List[float]
    input_conf: List[Tuple[int, int]]
    output_conf: List[Tuple[int, int]]
    input_velocity: List[Tuple[int, int]]
    output_velocity: List[Tuple[int, int]]


ConstraintRecord = Annotated[Union[ImplicitRecord, ExplicitRecord], Field(discriminator="kind")]


class ConstraintArchive(BaseModel):
    schema_version: int = consts.SCHEMA_VERSION
    constraint: ConstraintRecord


class _ArchiveHeader(BaseModel):
    schema_version: int


def to_record(constraint: Implicit) -> Union[ImplicitRecord, ExplicitRecord]:
    common = dict(
        comparison_type=list(constraint.comparison_type),
        mask=constraint.mask.tolist(),
        right_hand_side=constraint.right_hand_side.tolist(),
    )
    if isinstance(constraint, Explicit):
        return ExplicitRecord(
            configuration_space=constraint.configuration_space.name,
            explicit_function=constraint.explicit_function.name,
            input_conf=constraint.input_conf,
            output_conf=constraint.output_conf,
            input_velocity=constraint.input_velocity,
            output_velocity=constraint.output_velocity,
            **common,
        )
    return ImplicitRecord(function=constraint.function.name, **common)


def dumps(constraint: Implicit, indent: Optional[int] = None) -> str:
    """Serialize a constraint to a JSON string."""
    archive = ConstraintArchive(constraint=to_record(constraint))
    return archive.model_dump_json(indent=indent)


_RN = re.compile(r"R\^(\d+)")


def _standard_space(name: str) -> Optional[LieGroupSpace]:
    factors = []
    for factor in name.split("*"):
        match = _RN.fullmatch(factor)
        if match:
            factors.append(LieGroupSpace.Rn(int(match.group(1))))
        elif factor == "SO(2)":
            factors.append(SO2Space())
        elif factor == "SO(3)":
            factors.append(LieGroupSpace.SO3())
        elif factor == "SE(3)":
            factors.append(LieGroupSpace.SE3())
        else:
            return None
    if len(factors) == 1:
        return factors[0]
    return CartesianProduct(factors)


def _resolve_function(name: str, context: Mapping[str, object]) -> DifferentiableFunction:
    function = context.get(name)
    if not isinstance(function, DifferentiableFunction):
        raise SerializationError(f"No differentiable function named {name!r} in the context")
    return function


def _resolve_space(name: str, context: Mapping[str, object]) -> LieGroupSpace:
    space = context.get(name)
    if space is None:
        space = _standard_space(name)
    if not isinstance(space, LieGroupSpace):
        raise SerializationError(f"No configuration space named {name!r} in the context")
    return space


def from_record(
    record: Union[ImplicitRecord, ExplicitRecord],
    context: Mapping[str, object],
) -> Implicit:
    if isinstance(record, ExplicitRecord):
        constraint: Implicit = Explicit(
            _resolve_space(record.configuration_space, context),
            _resolve_function(record.explicit_function, context),
            record.input_conf,
            record.output_conf,
            record.input_velocity,
            record.output_velocity,
            record.comparison_type,
            record.mask,
        )
    else:
        constraint = Implicit(
            _resolve_function(record.function, context),
            record.comparison_type,
            record.mask,
        )
    rhs = np.array(record.right_hand_side, dtype=np.float64)
    if rhs.shape != (constraint.function.output_size,):
        raise SerializationError(
            f"Right hand side has {rhs.shape[0]} entries, "
            f"expected {constraint.function.output_size}"
        )
    constraint.right_hand_side = rhs
    return constraint


def loads(text: str, context: Mapping[str, object]) -> Implicit:
    """Restore a constraint from a JSON string.

    Args:
        text: Output of :func:`dumps`.
        context: Functions and spaces referenced by the archive, by name.
            Standard spaces (R^n, SO(2), SO(3), SE(3) and their products)
            need not be listed.

    Raises:
        SerializationError: If the archive is invalid, comes from a newer
            version or refers to unknown functions or spaces.
    """
    try:
        header = _ArchiveHeader.model_validate_json(text)
    except ValidationError as e:
        raise SerializationError(f"Invalid constraint archive: {e}") from e
    if header.schema_version > consts.SCHEMA_VERSION:
        raise SerializationError(
            f"Archive schema version {header.schema_version} is newer than "
            f"supported version {consts.SCHEMA_VERSION}"
        )
    try:
        archive = ConstraintArchive.model_validate_json(text)
    except ValidationError as e:
        raise SerializationError(f"Invalid constraint archive: {e}") from e
    return from_record(archive.constraint, context)
