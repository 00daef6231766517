"""
crn_reactor: deterministic simulation of chemical reaction networks.

Parses reaction strings such as "A + B -> C", validates and repairs CRN
specifications, builds stoichiometry matrices and integrates the
mass-action ODEs with scipy.
"""

from .errors import (
    CRNError,
    ValidationError,
    FieldTypeError,
    EmptyFieldError,
    InvalidValueError,
    DuplicateSpeciesError,
    LengthMismatchError,
    GrammarError,
    DegenerateReactionError,
    MolecularityError,
    IntegrationError,
    CRNWarning,
    MalformedSpeciesWarning,
    AutoRepairWarning,
    Diagnostic,
)

from .parser import (
    ZERO,
    Token,
    TokenKind,
    Term,
    Stoichiometry,
    tokenize,
    split_sides,
    is_empty_part,
    terms_of,
    species_count,
    stoichiometry_of_species,
    stoichiometry_of_part,
    stoichiometry_of_reaction,
    get_reactants,
    get_products,
    reactants_in_reaction,
    is_unimolecular,
    is_bimolecular,
    is_formation,
    is_degradation,
    expand_species,
)

from .validation import (
    check_crn,
    check_fix_reaction,
)

from .stoichiometry import (
    StoichiometryMatrices,
    StoichiometricAnalyzer,
    StoichiometricAnalysis,
    build_matrices,
    compute_rank,
    get_conservation_laws,
)

from .network import (
    ReactionNetwork,
    combine_crns,
)

from .simulator import (
    RateLaw,
    ReactionSystem,
    ReactionSimulator,
    SimulationResult,
    SolverOptions,
    build_rate_laws,
    build_derivative,
    react,
)

__version__ = "0.1.0"
__all__ = [
    # Errors and diagnostics
    "CRNError",
    "ValidationError",
    "FieldTypeError",
    "EmptyFieldError",
    "InvalidValueError",
    "DuplicateSpeciesError",
    "LengthMismatchError",
    "GrammarError",
    "DegenerateReactionError",
    "MolecularityError",
    "IntegrationError",
    "CRNWarning",
    "MalformedSpeciesWarning",
    "AutoRepairWarning",
    "Diagnostic",
    # Parser
    "ZERO",
    "Token",
    "TokenKind",
    "Term",
    "Stoichiometry",
    "tokenize",
    "split_sides",
    "is_empty_part",
    "terms_of",
    "species_count",
    "stoichiometry_of_species",
    "stoichiometry_of_part",
    "stoichiometry_of_reaction",
    "get_reactants",
    "get_products",
    "reactants_in_reaction",
    "is_unimolecular",
    "is_bimolecular",
    "is_formation",
    "is_degradation",
    "expand_species",
    # Validation
    "check_crn",
    "check_fix_reaction",
    # Stoichiometry
    "StoichiometryMatrices",
    "StoichiometricAnalyzer",
    "StoichiometricAnalysis",
    "build_matrices",
    "compute_rank",
    "get_conservation_laws",
    # Networks
    "ReactionNetwork",
    "combine_crns",
    # Simulator
    "RateLaw",
    "ReactionSystem",
    "ReactionSimulator",
    "SimulationResult",
    "SolverOptions",
    "build_rate_laws",
    "build_derivative",
    "react",
]
