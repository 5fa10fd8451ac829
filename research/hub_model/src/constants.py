# Fixed point scale factors
WAD = 1_000_000_000_000_000_000  # 1e18, token amounts
RAY = 1_000_000_000_000_000_000_000_000_000  # 1e27, interest indexes
HALF_RAY = RAY // 2
PERCENTAGE_FACTOR = 10_000  # Basis points (100% = 10000)
HALF_PERCENTAGE_FACTOR = PERCENTAGE_FACTOR // 2

# Every tracked field must stay within [0, MAX_UINT]
MAX_UINT = 2**256 - 1

# Virtual assets/shares added to both sides of every exchange rate
OFFSET_UNITS = 10**6

# Allowed total debt increase on non-borrow bookkeeping (rounding slack)
DEBT_TOLERANCE = 1

# Repay sentinel: restore all base and premium debt
REPAY_ALL = MAX_UINT

# Time constants
TICKS_PER_YEAR = 365 * 24 * 60 * 60  # one tick per second
