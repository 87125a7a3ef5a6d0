"""
Weight Lifting Exercises - activity quality classifier.

Loads wearable-sensor readings, drops irrelevant columns, centers and
scales the features, tunes a gradient-boosted tree classifier with
k-fold cross-validation and reports validation accuracy.
"""

__version__ = "1.0.0"
