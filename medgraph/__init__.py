"""
MedGraph Support Query System

Answers medical device support questions from facts retrieved by weighted
traversal of a typed knowledge graph, with the retrieved facts grounding an
external text-generation call.
"""

__version__ = "1.0.0"
__author__ = "MedGraph Team"
