"""
Drug reviews — condition classification from free-text patient reviews.

This package contains:
- configuration (columns, label set, relabel rules, paths)
- schema checks / raw CSV loading
- preprocessing (text cleaning, malformed-row filtering, condition relabeling)
- exploratory text statistics (word frequencies, TF-IDF per condition) + plots
- TF-IDF feature pipeline and the model zoo
- cross-validated tuning with one-standard-error selection
- evaluation / prediction utilities
"""

__version__ = "0.1.0"
