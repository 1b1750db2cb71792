"""
DuckDB schema for the review progress log.

Timestamps are stored as naive UTC; `study_date` is the UTC calendar date of
the review and drives the daily totals.
"""

DB_SCHEMA_SQL = """
CREATE SEQUENCE IF NOT EXISTS review_id_seq START 1;

CREATE TABLE IF NOT EXISTS reviews (
    review_id INTEGER PRIMARY KEY DEFAULT nextval('review_id_seq'),
    card_id VARCHAR NOT NULL,
    phrase VARCHAR,
    grade VARCHAR NOT NULL,
    ts TIMESTAMP NOT NULL,
    study_date DATE NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_reviews_card_id ON reviews (card_id);
CREATE INDEX IF NOT EXISTS idx_reviews_study_date ON reviews (study_date);
"""
