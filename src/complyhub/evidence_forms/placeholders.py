"""Sample minutes shown as placeholders in the meeting forms."""

BOARD_MEETING_MINUTES_PLACEHOLDER = """1. Call to Order
- Meeting called to order at 10:00 by the Chair. Quorum confirmed.

2. Review of Previous Minutes
- Minutes of the previous meeting reviewed and approved without changes.

3. Company Direction
- CEO presented the strategic plan and key objectives for the next two quarters.
- Board discussed hiring plans and budget allocation.

4. Information Security Oversight
- CTO summarized the security program, open audit findings and upcoming compliance milestones.
- Board approved the updated information security policy.

5. Action Items
- CFO to circulate revised budget by end of month.

Meeting adjourned at 11:30."""

IT_LEADERSHIP_MINUTES_PLACEHOLDER = """1. Attendance
- CTO, VP Engineering, Head of Infrastructure, Security Lead.

2. Technology Roadmap
- Reviewed progress on the platform migration; 70% of services moved.
- Agreed to prioritize observability improvements next sprint.

3. Security and Operations
- Reviewed open vulnerabilities; two high-severity items assigned owners.
- Access review for production systems completed this month.

4. Change Management
- Approved the database version upgrade scheduled for next week.

5. Action Items
- Security Lead to report on vulnerability remediation at next meeting."""

RISK_COMMITTEE_MINUTES_PLACEHOLDER = """1. Attendance
- COO (Chair), CTO, Head of Legal, Security Lead.

2. Risk Register Review
- Reviewed top risks; vendor concentration risk raised from medium to high.
- Closed the risk related to unencrypted backups after remediation was verified.

3. New Risks
- Identified risk of key-person dependency in the infrastructure team.
- Owner assigned and mitigation plan due next meeting.

4. Treatment Decisions
- Accepted residual risk for legacy reporting system until decommission.

5. Action Items
- Head of Legal to review vendor contracts for exit clauses."""
