"""Pipeline invocation: cooldowns, scheduling and orchestration."""
