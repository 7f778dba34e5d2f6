"""
Session persistence for the duplicate review workflow.
"""
from .workflow import DuplicateWorkflow

SESSION_KEY = 'clippings_duplicates'


class WorkflowStore:
    """Loads and saves one DuplicateWorkflow in a Django session"""

    def __init__(self, session):
        self.session = session

    def load(self) -> DuplicateWorkflow:
        return DuplicateWorkflow.from_dict(self.session.get(SESSION_KEY))

    def save(self, workflow):
        self.session[SESSION_KEY] = workflow.to_dict()
        # Persisted immediately; other requests in this session read it mid-call
        self.session.save()

    def reload(self) -> DuplicateWorkflow:
        """Re-read the workflow another request may have changed meanwhile"""
        session_key = self.session.session_key
        if session_key is None:
            return self.load()
        fresh = self.session.__class__(session_key=session_key)
        data = fresh.get(SESSION_KEY)
        if data is None:
            return self.load()
        return DuplicateWorkflow.from_dict(data)
