from sqlalchemy import BigInteger, Integer

# Money columns hold minor units; BigInteger keeps jackpots of many millions safe.
MONEY_TYPE = BigInteger().with_variant(Integer, "sqlite")

# Use BigInteger by default, with a SQLite-safe Integer variant for autoincrement PKs.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")
