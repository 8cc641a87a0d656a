"""
Error kinds raised by the metrics and evaluation pipeline.

Every error carries the offending subject id, column or fold index (when known)
so a failure in a batch run can be traced back to its input row.
"""


class CGMDataError(ValueError):
    """Base class; ``subject_id``, ``column`` and ``fold`` are None when not applicable."""

    def __init__(self, message, subject_id=None, column=None, fold=None):
        context = []
        if subject_id is not None:
            context.append(f"subject_id={subject_id!r}")
        if column is not None:
            context.append(f"column={column!r}")
        if fold is not None:
            context.append(f"fold={fold}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)
        self.subject_id = subject_id
        self.column = column
        self.fold = fold


class MalformedReadingError(CGMDataError):
    """A reading has neither a numeric glucose value nor a recognised sentinel token."""


class NoDataError(CGMDataError):
    """A subject has no readings to compute a statistic from."""


class EmptyJoinError(CGMDataError):
    """Metrics and labels share no subject ids."""


class ImputationError(CGMDataError):
    """A covariate column has no observed values to impute from."""


class InsufficientClassMembersError(CGMDataError):
    """
    A label class has fewer members than folds.

    Recorded on the FoldSet rather than raised, unless strict fold
    construction is requested.
    """

    def __init__(self, label, n_members, n_folds):
        super().__init__(
            f"Class {label!r} has {n_members} member(s) for {n_folds} folds; "
            f"{n_folds - n_members} fold(s) will not contain it",
            column=None,
        )
        self.label = label
        self.n_members = n_members
        self.n_folds = n_folds
        self.shortfall = n_folds - n_members


class LabelMismatchError(CGMDataError):
    """Predicted and actual labels do not share a vocabulary."""


class DegenerateReductionError(CGMDataError):
    """No component can be extracted from the data (feasible rank < 1)."""


class DuplicateSubjectError(CGMDataError):
    """A per-subject table lists the same subject id more than once."""


class FoldEvaluationError(CGMDataError):
    """The classifier or reducer failed inside a fold; the original error is chained."""
