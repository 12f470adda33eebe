"""Collection names shared by the pipeline, the admin portal and the citizen app"""

ISSUES = "civic_issues"
ISSUE_COMMENTS = "issue_comments"
DEPARTMENTS = "departments"
ASSIGNMENT_RULES = "auto_assignment_rules"
AUTOMATION_RULES = "automation_rules"
USERS = "users"
USER_NOTIFICATIONS = "user_notifications"
NOTIFICATION_LOGS = "notification_logs"
