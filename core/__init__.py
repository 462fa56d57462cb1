"""
Core Module: the conversational dialog engine
- intent: text normalization, entity extraction and rule-based intent classification
- state: per-identity conversation state and wizard payloads
- dialog: generic slot-filling dialog manager
- wizards: multi-step flows (creation, broadcast, report, roster, submission, history, image to PDF)
- greetings: greeting, menu and help text
"""
