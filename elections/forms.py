"""
Django Forms for the Election API
=================================

Validates JSON payloads posted by the admin dashboard:
- Creating elections
- Partial settings updates (only the keys sent are applied)

Dates are normalized to YYYY-MM-DD and times to HH:MM:SS.
"""

from django import forms  # pyright: ignore[reportMissingModuleSource]

from .models import Election
from .utils import parse_clock, parse_day


class ElectionForm(forms.ModelForm):
    """
    Form for creating a new election.

    Accepts camelCase keys from the client (see ``from_payload``). Times may
    be sent as HH:MM or HH:MM:SS.
    """

    start_time = forms.CharField()
    end_time = forms.CharField()
    date = forms.CharField()
    start_date = forms.CharField(required=False)
    end_date = forms.CharField(required=False)

    class Meta:
        model = Election
        fields = ['title', 'date', 'start_date', 'end_date', 'start_time', 'end_time']

    PAYLOAD_KEYS = {
        'title': 'title',
        'date': 'date',
        'startDate': 'start_date',
        'endDate': 'end_date',
        'startTime': 'start_time',
        'endTime': 'end_time',
    }

    @classmethod
    def from_payload(cls, payload):
        data = {field: payload.get(key) for key, field in cls.PAYLOAD_KEYS.items() if payload.get(key) not in (None, '')}
        return cls(data=data)

    def clean_date(self):
        return parse_day(self.cleaned_data['date'])

    def clean_start_date(self):
        return parse_day(self.cleaned_data.get('start_date'))

    def clean_end_date(self):
        return parse_day(self.cleaned_data.get('end_date'))

    def clean_start_time(self):
        return parse_clock(self.cleaned_data['start_time'])

    def clean_end_time(self):
        return parse_clock(self.cleaned_data['end_time'])


class SettingsPatchForm(forms.Form):
    """
    Partial update of the Setting singleton.

    Every field is optional; ``changes()`` only returns the fields that were
    present in the payload, so an omitted boolean is not read as False.
    """

    # camelCase payload key -> model field
    PAYLOAD_KEYS = {
        'isActive': 'is_active',
        'electionTitle': 'election_title',
        'votingStartDate': 'voting_start_date',
        'votingEndDate': 'voting_end_date',
        'votingStartTime': 'voting_start_time',
        'votingEndTime': 'voting_end_time',
        'resultsPublished': 'results_published',
        'allowVoterRegistration': 'allow_voter_registration',
        'requireEmailVerification': 'require_email_verification',
        'maxVotesPerVoter': 'max_votes_per_voter',
        'systemName': 'system_name',
        'systemLogo': 'system_logo',
        'companyName': 'company_name',
        'companyLogo': 'company_logo',
        'schoolName': 'school_name',
        'schoolLogo': 'school_logo',
    }

    # Keys that must be pushed to the current election
    ELECTION_KEYS = {
        'isActive', 'resultsPublished', 'electionTitle', 'votingStartDate',
        'votingEndDate', 'votingStartTime', 'votingEndTime',
    }
    FLAG_KEYS = {'isActive', 'resultsPublished'}

    is_active = forms.BooleanField(required=False)
    election_title = forms.CharField(required=False, max_length=200)
    voting_start_date = forms.CharField(required=False)
    voting_end_date = forms.CharField(required=False)
    voting_start_time = forms.CharField(required=False)
    voting_end_time = forms.CharField(required=False)
    results_published = forms.BooleanField(required=False)
    allow_voter_registration = forms.BooleanField(required=False)
    require_email_verification = forms.BooleanField(required=False)
    max_votes_per_voter = forms.IntegerField(required=False, min_value=1)
    system_name = forms.CharField(required=False, max_length=200)
    system_logo = forms.CharField(required=False, max_length=500)
    company_name = forms.CharField(required=False, max_length=200)
    company_logo = forms.CharField(required=False, max_length=500)
    school_name = forms.CharField(required=False, max_length=200)
    school_logo = forms.CharField(required=False, max_length=500)

    def __init__(self, payload):
        self.present = {key for key in payload if key in self.PAYLOAD_KEYS}
        data = {self.PAYLOAD_KEYS[key]: payload[key] for key in self.present}
        super().__init__(data=data)

    def clean_voting_start_date(self):
        return parse_day(self.cleaned_data.get('voting_start_date'))

    def clean_voting_end_date(self):
        return parse_day(self.cleaned_data.get('voting_end_date'))

    def clean_voting_start_time(self):
        return parse_clock(self.cleaned_data.get('voting_start_time'))

    def clean_voting_end_time(self):
        return parse_clock(self.cleaned_data.get('voting_end_time'))

    def clean(self):
        cleaned = super().clean()
        # Schedule and title fields cannot be blanked out
        for key in self.present & (self.ELECTION_KEYS - self.FLAG_KEYS):
            field = self.PAYLOAD_KEYS[key]
            if field not in self.errors and not cleaned.get(field):
                self.add_error(field, 'This field cannot be empty.')
        if 'maxVotesPerVoter' in self.present and cleaned.get('max_votes_per_voter') is None:
            self.add_error('max_votes_per_voter', 'This field cannot be empty.')
        return cleaned

    def changes(self):
        """Model field -> cleaned value, for the payload keys that were sent."""
        return {self.PAYLOAD_KEYS[key]: self.cleaned_data[self.PAYLOAD_KEYS[key]] for key in self.present}

    def touches_election(self):
        return bool(self.present & self.ELECTION_KEYS)

    def error_details(self):
        return {field: [str(message) for message in messages] for field, messages in self.errors.items()}
