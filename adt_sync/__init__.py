"""Synchronises AtCoder Daily Training contests and per-user accepted problems into DynamoDB."""
