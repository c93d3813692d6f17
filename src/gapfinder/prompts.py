"""Prompt templates for Claude API calls."""

SUMMARY_PROMPT = """You are summarizing a document for the people who will ask questions about it.

Document title: "{title}"

Document content:
{content}

Write a 2-3 sentence summary of what this document contains and why it would be useful. Be specific and factual. Do not use phrases like "This document..." or "This text..."."""

CLUSTER_LABEL_PROMPT = """You are labeling groups of similar questions that people asked an assistant and that it could not answer. For each cluster below, provide a short topic label (3-8 words) that describes what people are asking about.

{clusters}

Respond with one label per line, in order. Just the labels, no numbering or extra text."""
