# Trading module
"""Options trade tracking: models, position reconciliation, analytics and lifecycle actions."""

from .models import (
    ContractKey,
    ContractType,
    Position,
    PositionStatus,
    Strategy,
    Trade,
    TradeStatus,
    TradeType,
)
from .identifiers import IIdAllocator, SequentialIdAllocator
from .validation import FieldError, TradeValidationError, TradeValidator
from .marks import IMarkProvider, StaticMarkProvider
from .analytics import (
    PerformanceMetrics,
    IPerformanceAnalytics,
    PerformanceAnalytics,
)
from .reconciler import IPositionReconciler, PositionReconciler, ReconcilerSnapshot, TradeSerializer
from .actions import (
    ActionStatus,
    ActionRejectionReason,
    ActionResult,
    PositionActionService,
)
from .corrections import (
    CorrectionReport,
    TradeTypeCorrection,
    find_trade_type_corrections,
    fix_trade_type_classifications,
)

__all__ = [
    "ContractKey",
    "ContractType",
    "Position",
    "PositionStatus",
    "Strategy",
    "Trade",
    "TradeStatus",
    "TradeType",
    "IIdAllocator",
    "SequentialIdAllocator",
    "FieldError",
    "TradeValidationError",
    "TradeValidator",
    "IMarkProvider",
    "StaticMarkProvider",
    "PerformanceMetrics",
    "IPerformanceAnalytics",
    "PerformanceAnalytics",
    "IPositionReconciler",
    "PositionReconciler",
    "ReconcilerSnapshot",
    "TradeSerializer",
    "ActionStatus",
    "ActionRejectionReason",
    "ActionResult",
    "PositionActionService",
    "CorrectionReport",
    "TradeTypeCorrection",
    "find_trade_type_corrections",
    "fix_trade_type_classifications",
]
