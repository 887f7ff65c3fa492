"""
Fund Modules.

Business modules over the fund kernel:

- Project: projects and sub-projects that funding is allocated to
- Funding: donor funding, allocations, expenses and budget enforcement
- Reporting: reporting periods, the balance engine and report queries

Modules import from the kernel, never the other way round.
"""
