"""
Training Hub - training session manager for a team sport

Responsibilities:
- Training session lifecycle (plan, start, finish, cancel, delete)
- Roster of regular players and guests per session
- Round-robin match generation and match scoring
- Per-attendee cost allocation
"""
