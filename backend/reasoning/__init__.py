"""
Reasoning client: turns prompts into structured analysis from a quota-limited
text-generation service, behind a shared window limiter, quota cooldown and
response cache.
"""
