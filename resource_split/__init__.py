"""
Resource Summary Splitter

Groups resource-monitor summaries by category and a user-chosen field,
computes per-group statistics and writes gnuplot-ready data files
(boxplots, ridge "mountain" histograms, scatter/regression plots).
"""

__version__ = "0.1.0"
