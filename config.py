"""I centralise the main numeric knobs for the chip tycoon simulation so I can tweak balance easily."""

from decimal import Decimal

# --- Calendar ---
BASE_YEAR: int = 1990
MIN_TECH_YEAR: int = 1970
MAX_TECH_YEAR: int = 2100

# --- Market ---
# Share starts low so the planner begins in its defensive action set.
INITIAL_MARKET_SHARE: float = 0.10
SHARE_MIN: float = 0.05
SHARE_MAX: float = 0.95
SHARE_DRIFT_RATE: float = 0.10
COMPETITOR_ATTRACTIVENESS: float = 1.0
PRICE_PREF_BETA: float = 1.5
DEMAND_NOISE_FRAC: float = 0.02
ELASTICITY_CEILING: float = -0.05
# Used when a segment has no explicit price anchor and the Lerner price is undefined.
DEFAULT_MARKUP_FRAC: float = 0.5

# --- Fab & production ---
BASE_WAFERS_PER_ENTITY: int = 1000
BASE_DIES_PER_WAFER: int = 50
DEFECT_RATE_PCT: int = 5
USABLE_DIE_AREA_MM2: float = 6200.0
YIELD_OVERHEAD_FRAC: float = 0.05
DEFAULT_UNIT_COST_USD: Decimal = Decimal("200.00")
DEFAULT_DIE_AREA_MM2: float = 124.0

# --- R&D & tape-outs ---
RD_BASELINE_PER_MONTH: float = 0.01
RD_BOOST_MIN: float = -0.01
RD_BOOST_MAX: float = 0.05
# Progress added per million USD of monthly R&D budget.
RD_PROGRESS_PER_MILLION_USD: float = 0.005
TAPEOUT_LEAD_MONTHS: int = 9
EXPEDITE_SAVED_MONTHS: int = 3
EXPEDITE_FEE_USD: Decimal = Decimal("100000.00")
APPEAL_BUMP: float = 0.05
APPEAL_MAX: float = 1.0
AI_PERF_INDEX_BASE: float = 0.5

# --- Foundry contracts ---
DEFAULT_FOUNDRY_ID: str = "foundry-a"
DEFAULT_CONTRACT_MONTHS: int = 12
DEFAULT_CONTRACT_LEAD_MONTHS: int = 0
DEFAULT_BILLING_CENTS_PER_WAFER: int = 100_000
DEFAULT_TAKE_OR_PAY_FRAC: float = 0.5

# --- Settlement lags (months) ---
REVENUE_LAG_MONTHS: int = 0
COGS_LAG_MONTHS: int = 0
CONTRACT_LAG_MONTHS: int = 0
RD_LAG_MONTHS: int = 0

# --- Tactics ---
SHARE_DROP_DELTA: float = 0.05
PRICE_EPSILON_FRAC: float = 0.02
MIN_MARGIN_FRAC: float = 0.05
SHORTAGE_RAISE_THRESHOLD: float = 1.2
SHORTAGE_RAISE_EPSILON_FRAC: float = 0.02
CASH_LIQUIDITY_FLOOR_K: float = 0.5
RD_BOOST_ON_EXPEDITE: float = 0.01
RD_CUT_ON_CASH_LOW: float = 0.01

# --- Planner ---
BEAM_WIDTH: int = 3
PLAN_MONTHS: int = 24
QUARTER_STEP: int = 3
PLAN_DISCOUNT: float = 0.99
PRICE_STEP_FRAC: float = 0.05
CAPACITY_STEP_UNITS: int = 10_000
LOW_SHARE_THRESHOLD: float = 0.2
PLANNER_DEFAULT_DEMAND: int = 100_000
PLANNER_DEFAULT_ELASTICITY: float = -1.2

# Utility weights (renormalised when they do not sum to 1)
WEIGHT_SHARE: float = 0.4
WEIGHT_MARGIN: float = 0.3
WEIGHT_LIQUIDITY: float = 0.2
WEIGHT_PORTFOLIO: float = 0.1

# Product attractiveness blend
PRODUCT_WEIGHT_PERF: float = 0.7
PRODUCT_WEIGHT_PRICE_REL: float = 0.0
PRODUCT_WEIGHT_APPEAL: float = 0.3

# --- Tutorial ---
TUTORIAL_PRICE_CUT_FRAC: float = 0.05
TUTORIAL_CONTRACT_WAFERS: int = 1000
TUTORIAL_CONTRACT_MONTHS: int = 12
TUTORIAL_CASH_DEADLINE_MONTH: int = 24
TUTORIAL_CASH_THRESHOLD_CENTS: int = 0

# --- Dry-run export ---
PROJECTION_DEFAULT_MONTHS: int = 24

# --- Rounding / display ---
SHARE_DISPLAY_DECIMALS: int = 3

# Difficulty presets
DIFFICULTY_LEVELS = {
    "easy": {
        "cash_multiplier": 1.5,
        "min_margin_frac": 0.03,
        "price_epsilon_frac": 0.03,
        "take_or_pay_frac": 0.3,
        "annual_growth_pct_multiplier": 1.2,
        "event_severity_multiplier": 0.5,
    },
    "normal": {
        "cash_multiplier": 1.0,
        "min_margin_frac": 0.05,
        "price_epsilon_frac": 0.02,
        "take_or_pay_frac": 0.5,
        "annual_growth_pct_multiplier": 1.0,
        "event_severity_multiplier": 1.0,
    },
    "hard": {
        "cash_multiplier": 0.7,
        "min_margin_frac": 0.08,
        "price_epsilon_frac": 0.01,
        "take_or_pay_frac": 0.8,
        "annual_growth_pct_multiplier": 0.8,
        "event_severity_multiplier": 1.5,
    },
}
