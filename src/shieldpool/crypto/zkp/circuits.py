"""
ZKP Circuit definitions and constraint systems.

This module provides the circuit abstraction for the pool's two statements:
constraint systems over field elements, witnesses, and the concrete deposit
and withdraw circuits. Constraints are evaluated with the same field hash and
path recomputation the Merkle tree uses, so a witness satisfies a circuit
exactly when the tree would accept the corresponding path.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ...errors import ShieldPoolError, ValidationError
from ..commitments import NULLIFIER_TAG, NullifierScheme, Secret
from ..field import EMPTY_LEAF, decode_scalar, encode_scalar, field_hash
from ..merkle import MAX_DEPTH, recompute_root


class ConstraintType(Enum):
    """Types of constraints in a circuit."""

    EQUALITY = "equality"
    RANGE = "range"
    HASH = "hash"
    MERKLE_ROOT = "merkle_root"


@dataclass
class Constraint:
    """Represents a constraint in a circuit.

    Variable layout by type:

    * EQUALITY: ``[a, b]``
    * RANGE: ``[value]`` with ``min``/``max`` parameters (inclusive)
    * HASH: ``[output, *inputs]``
    * MERKLE_ROOT: ``[root, leaf, index, *siblings]``
    """

    constraint_id: str
    constraint_type: ConstraintType
    variables: List[str]
    parameters: Dict[str, Any] = field(default_factory=dict)
    description: str = ""

    def __post_init__(self):
        """Validate constraint after initialization."""
        if not self.constraint_id:
            raise ValueError("constraint_id cannot be empty")
        if not self.variables:
            raise ValueError("constraint must have at least one variable")


@dataclass
class ConstraintSystem:
    """Represents a system of constraints for a circuit."""

    constraints: List[Constraint] = field(default_factory=list)
    variables: Dict[str, str] = field(default_factory=dict)  # variable_name -> type
    public_variables: List[str] = field(default_factory=list)
    private_variables: List[str] = field(default_factory=list)
    internal_variables: List[str] = field(default_factory=list)
    constants: Dict[str, int] = field(default_factory=dict)

    def add_constraint(self, constraint: Constraint) -> None:
        """Add a constraint to the system."""
        for var in constraint.variables:
            if var not in self.variables:
                raise ValueError(f"Variable {var} not defined in constraint system")

        self.constraints.append(constraint)

    def add_variable(
        self,
        name: str,
        var_type: str,
        is_public: bool = False,
        is_internal: bool = False,
    ) -> None:
        """Add a variable to the constraint system."""
        if name in self.variables:
            raise ValueError(f"Variable {name} already exists")
        if is_public and is_internal:
            raise ValueError(f"Variable {name} cannot be both public and internal")

        self.variables[name] = var_type
        if is_public:
            self.public_variables.append(name)
        elif is_internal:
            self.internal_variables.append(name)
        else:
            self.private_variables.append(name)

    def add_constant(self, name: str, value: int) -> None:
        """Add a fixed value every witness carries."""
        if name in self.variables:
            raise ValueError(f"Variable {name} already exists")
        self.variables[name] = "constant"
        self.constants[name] = value

    def add_equality_constraint(self, var1: str, var2: str, description: str = "") -> None:
        self.add_constraint(
            Constraint(
                constraint_id=f"eq_{var1}_{var2}",
                constraint_type=ConstraintType.EQUALITY,
                variables=[var1, var2],
                description=description,
            )
        )

    def add_range_constraint(
        self, variable: str, min_val: int, max_val: int, description: str = ""
    ) -> None:
        self.add_constraint(
            Constraint(
                constraint_id=f"range_{variable}",
                constraint_type=ConstraintType.RANGE,
                variables=[variable],
                parameters={"min": min_val, "max": max_val},
                description=description,
            )
        )

    def add_hash_constraint(
        self, output_var: str, input_vars: Sequence[str], description: str = ""
    ) -> None:
        self.add_constraint(
            Constraint(
                constraint_id=f"hash_{output_var}",
                constraint_type=ConstraintType.HASH,
                variables=[output_var, *input_vars],
                description=description,
            )
        )

    def add_merkle_constraint(
        self,
        root_var: str,
        leaf_var: str,
        index_var: str,
        sibling_vars: Sequence[str],
        description: str = "",
    ) -> None:
        self.add_constraint(
            Constraint(
                constraint_id=f"merkle_{root_var}_{leaf_var}",
                constraint_type=ConstraintType.MERKLE_ROOT,
                variables=[root_var, leaf_var, index_var, *sibling_vars],
                description=description,
            )
        )

    def validate(self) -> bool:
        """Validate the constraint system."""
        for constraint in self.constraints:
            for var in constraint.variables:
                if var not in self.variables:
                    return False

        groups = [
            set(self.public_variables),
            set(self.private_variables),
            set(self.internal_variables),
            set(self.constants),
        ]
        if sum(len(g) for g in groups) != len(set().union(*groups)):
            return False

        return True

    def get_constraint_count(self) -> int:
        """Get the number of constraints."""
        return len(self.constraints)

    def get_variable_count(self) -> int:
        """Get the number of variables."""
        return len(self.variables)


@dataclass
class Witness:
    """Assignment of field elements to every variable of a circuit."""

    values: Dict[str, int] = field(default_factory=dict)
    public_values: Dict[str, int] = field(default_factory=dict)
    private_values: Dict[str, int] = field(default_factory=dict)

    def set_value(self, variable: str, value: int, is_public: bool = False) -> None:
        """Set a value for a variable."""
        self.values[variable] = value
        if is_public:
            self.public_values[variable] = value
        else:
            self.private_values[variable] = value

    def get_value(self, variable: str) -> Optional[int]:
        """Get the value of a variable."""
        return self.values.get(variable)

    def validate_against_system(self, system: ConstraintSystem) -> bool:
        """Validate witness against a constraint system."""
        for var in system.public_variables:
            if var not in self.public_values:
                return False

        for var in system.private_variables:
            if var not in self.private_values:
                return False

        for var in system.variables:
            if var not in self.values:
                return False

        return True


@dataclass
class PublicInputs:
    """Represents public inputs to a circuit."""

    inputs: List[bytes] = field(default_factory=list)
    input_names: List[str] = field(default_factory=list)

    def add_input(self, name: str, value: bytes) -> None:
        """Add a public input."""
        self.inputs.append(value)
        self.input_names.append(name)

    def get_input(self, name: str) -> Optional[bytes]:
        """Get a public input by name."""
        try:
            index = self.input_names.index(name)
            return self.inputs[index]
        except ValueError:
            return None

    def to_bytes(self) -> bytes:
        """Length-prefixed concatenation, the form proofs are bound to."""
        return len(self.inputs).to_bytes(4, "big") + b"".join(self.inputs)


@dataclass
class PrivateInputs:
    """Represents private inputs to a circuit. Never serialized."""

    inputs: List[bytes] = field(default_factory=list)
    input_names: List[str] = field(default_factory=list)

    def add_input(self, name: str, value: bytes) -> None:
        """Add a private input."""
        self.inputs.append(value)
        self.input_names.append(name)

    def get_input(self, name: str) -> Optional[bytes]:
        """Get a private input by name."""
        try:
            index = self.input_names.index(name)
            return self.inputs[index]
        except ValueError:
            return None

    def __repr__(self) -> str:
        return f"PrivateInputs(input_names={self.input_names})"


def _path_variables(prefix: str, depth: int) -> List[str]:
    return [f"{prefix}_{level}" for level in range(depth)]


class ZKCircuit(ABC):
    """Abstract base class for zero-knowledge circuits."""

    def __init__(self, circuit_id: str):
        self.circuit_id = circuit_id
        self.constraint_system = ConstraintSystem()
        self._built = False

    @abstractmethod
    def build(self) -> None:
        """Build the circuit by adding constraints and variables."""
        pass

    def _ensure_built(self) -> None:
        if not self._built:
            self.build()
            self._built = True

    @property
    def public_input_names(self) -> List[str]:
        self._ensure_built()
        return list(self.constraint_system.public_variables)

    @property
    def private_input_names(self) -> List[str]:
        self._ensure_built()
        return list(self.constraint_system.private_variables)

    def make_public_inputs(self, values: Sequence[bytes]) -> PublicInputs:
        return self._named_inputs(PublicInputs(), self.public_input_names, values, "public")

    def make_private_inputs(self, values: Sequence[bytes]) -> PrivateInputs:
        return self._named_inputs(PrivateInputs(), self.private_input_names, values, "private")

    @staticmethod
    def _named_inputs(container, names, values, kind):
        if len(values) != len(names):
            raise ValueError(f"Expected {len(names)} {kind} inputs, got {len(values)}")
        for name, value in zip(names, values):
            container.add_input(name, value)
        return container

    def compute_internal(self, witness: Witness) -> None:
        """Assign intermediate wires derived from the inputs."""
        pass

    def generate_witness(
        self, public_inputs: PublicInputs, private_inputs: PrivateInputs
    ) -> Witness:
        """Decode inputs and build a full assignment.

        Raises:
            ValueError: if an input is missing
            ValidationError: if an input is not a canonical scalar encoding
        """
        self._ensure_built()
        system = self.constraint_system
        witness = Witness()

        for name in system.public_variables:
            value = public_inputs.get_input(name)
            if value is None:
                raise ValueError(f"Missing public input {name}")
            witness.set_value(name, decode_scalar(value), is_public=True)

        for name in system.private_variables:
            value = private_inputs.get_input(name)
            if value is None:
                raise ValueError(f"Missing private input {name}")
            witness.set_value(name, decode_scalar(value), is_public=False)

        for name, value in system.constants.items():
            witness.values[name] = value

        self.compute_internal(witness)

        if not witness.validate_against_system(system):
            raise ValueError("Invalid witness for constraint system")

        return witness

    def failed_constraints(self, witness: Witness) -> List[str]:
        """Ids of the constraints the witness does not satisfy."""
        self._ensure_built()
        if not witness.validate_against_system(self.constraint_system):
            return ["witness_incomplete"]

        return [
            c.constraint_id
            for c in self.constraint_system.constraints
            if not self._verify_constraint(c, witness)
        ]

    def verify_witness(self, witness: Witness) -> bool:
        """Verify that a witness satisfies all constraints."""
        return not self.failed_constraints(witness)

    def _verify_constraint(self, constraint: Constraint, witness: Witness) -> bool:
        """Verify a single constraint."""
        values = [witness.get_value(var) for var in constraint.variables]
        if any(v is None for v in values):
            return False

        if constraint.constraint_type == ConstraintType.EQUALITY:
            a, b = values
            return a == b

        if constraint.constraint_type == ConstraintType.RANGE:
            min_val = constraint.parameters.get("min", 0)
            max_val = constraint.parameters["max"]
            return min_val <= values[0] <= max_val

        if constraint.constraint_type == ConstraintType.HASH:
            output, *inputs = values
            try:
                return field_hash(*inputs) == output
            except ValidationError:
                return False

        if constraint.constraint_type == ConstraintType.MERKLE_ROOT:
            root, leaf, index, *siblings = values
            try:
                return recompute_root(leaf, index, siblings) == root
            except ShieldPoolError:
                return False

        return False

    def get_circuit_info(self) -> Dict[str, Any]:
        """Get information about the circuit."""
        self._ensure_built()

        return {
            "circuit_id": self.circuit_id,
            "constraint_count": self.constraint_system.get_constraint_count(),
            "variable_count": self.constraint_system.get_variable_count(),
            "public_variables": self.constraint_system.public_variables,
            "private_variables": self.constraint_system.private_variables,
            "constraints": [
                {
                    "id": c.constraint_id,
                    "type": c.constraint_type.value,
                    "variables": c.variables,
                    "description": c.description,
                }
                for c in self.constraint_system.constraints
            ],
        }

    def validate(self) -> bool:
        """Validate the circuit."""
        self._ensure_built()
        return self.constraint_system.validate()

    @property
    def is_built(self) -> bool:
        """Check if circuit is built."""
        return self._built


def _check_depth(depth: int) -> None:
    if not isinstance(depth, int) or not 1 <= depth <= MAX_DEPTH:
        raise ValidationError(
            f"Circuit depth must be between 1 and {MAX_DEPTH}", field="depth", value=depth
        )


class DepositCircuit(ZKCircuit):
    """
    Deposit statement.

    Public: ``old_root``, ``new_root``, ``commitment``, ``leaf_index``.
    Private: ``id``, ``r`` and the siblings ``old_path_0..D-1``.

    Proves that ``commitment = Hash(id, r)``, that the leaf at ``leaf_index``
    under ``old_root`` is EMPTY, and that writing ``commitment`` there with the
    same siblings yields ``new_root``.
    """

    def __init__(self, depth: int, empty_leaf: int = EMPTY_LEAF):
        _check_depth(depth)
        super().__init__(f"shieldpool.deposit.d{depth}")
        self.depth = depth
        self.empty_leaf = empty_leaf

    def build(self) -> None:
        cs = self.constraint_system
        cs.add_variable("old_root", "scalar", is_public=True)
        cs.add_variable("new_root", "scalar", is_public=True)
        cs.add_variable("commitment", "scalar", is_public=True)
        cs.add_variable("leaf_index", "index", is_public=True)
        cs.add_variable("id", "scalar")
        cs.add_variable("r", "scalar")
        path = _path_variables("old_path", self.depth)
        for name in path:
            cs.add_variable(name, "scalar")
        cs.add_constant("empty_leaf", self.empty_leaf)

        cs.add_range_constraint(
            "leaf_index", 0, (1 << self.depth) - 1, "leaf index fits the tree"
        )
        cs.add_hash_constraint(
            "commitment", ["id", "r"], "commitment opens to (id, r)"
        )
        cs.add_merkle_constraint(
            "old_root", "empty_leaf", "leaf_index", path, "slot is empty under old root"
        )
        cs.add_merkle_constraint(
            "new_root", "commitment", "leaf_index", path, "new root holds the commitment"
        )
        self._built = True

    @staticmethod
    def encode_public_inputs(
        old_root: int, new_root: int, commitment: int, leaf_index: int
    ) -> List[bytes]:
        """Public inputs in circuit order."""
        return [
            encode_scalar(old_root),
            encode_scalar(new_root),
            encode_scalar(commitment),
            encode_scalar(leaf_index),
        ]

    @staticmethod
    def encode_private_inputs(secret: Secret, siblings: Sequence[int]) -> List[bytes]:
        """Private inputs in circuit order."""
        return [encode_scalar(secret.id), encode_scalar(secret.r)] + [
            encode_scalar(s) for s in siblings
        ]


class WithdrawCircuit(ZKCircuit):
    """
    Withdraw statement.

    Proves knowledge of ``r``, an ``index`` and a path such that
    ``Hash(id, r)`` is the leaf at ``index`` under ``root``. The commitment is
    an internal wire and never leaves the prover.

    With the identity nullifier scheme ``id`` is public (it *is* the
    nullifier). With the hashed scheme ``id`` is private and the public
    ``nullifier`` is constrained to ``Hash(id, NULLIFIER_TAG)``.
    """

    def __init__(
        self, depth: int, scheme: NullifierScheme = NullifierScheme.IDENTITY
    ):
        _check_depth(depth)
        super().__init__(f"shieldpool.withdraw.{scheme.value}.d{depth}")
        self.depth = depth
        self.scheme = scheme

    def build(self) -> None:
        cs = self.constraint_system
        cs.add_variable("root", "scalar", is_public=True)
        if self.scheme == NullifierScheme.IDENTITY:
            cs.add_variable("id", "scalar", is_public=True)
        else:
            cs.add_variable("nullifier", "scalar", is_public=True)
            cs.add_variable("id", "scalar")
            cs.add_constant("nullifier_tag", NULLIFIER_TAG)
        cs.add_variable("r", "scalar")
        cs.add_variable("index", "index")
        path = _path_variables("path", self.depth)
        for name in path:
            cs.add_variable(name, "scalar")
        cs.add_variable("commitment", "scalar", is_internal=True)

        cs.add_range_constraint("index", 0, (1 << self.depth) - 1, "index fits the tree")
        cs.add_hash_constraint("commitment", ["id", "r"], "commitment opens to (id, r)")
        if self.scheme == NullifierScheme.HASHED:
            cs.add_hash_constraint(
                "nullifier", ["id", "nullifier_tag"], "nullifier derives from id"
            )
        cs.add_merkle_constraint(
            "root", "commitment", "index", path, "commitment is a leaf under root"
        )
        self._built = True

    def compute_internal(self, witness: Witness) -> None:
        witness.values["commitment"] = field_hash(
            witness.get_value("id"), witness.get_value("r")
        )

    @staticmethod
    def encode_public_inputs(root: int, nullifier: int) -> List[bytes]:
        """Public inputs in circuit order: the root and the revealed nullifier."""
        return [encode_scalar(root), encode_scalar(nullifier)]

    def encode_private_inputs(
        self, secret: Secret, index: int, siblings: Sequence[int]
    ) -> List[bytes]:
        """Private inputs in circuit order."""
        head = [] if self.scheme == NullifierScheme.IDENTITY else [encode_scalar(secret.id)]
        return (
            head
            + [encode_scalar(secret.r), encode_scalar(index)]
            + [encode_scalar(s) for s in siblings]
        )
