"""
Sign-in and sign-up forms.

Validation here is local: a mismatched confirmation or a short password is
reported inline and nothing is written.
"""

from django import forms
from django.contrib.auth import get_user_model


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(widget=forms.PasswordInput)


class SignupForm(forms.Form):
    full_name = forms.CharField(max_length=200)
    email = forms.EmailField()
    password = forms.CharField(widget=forms.PasswordInput)
    confirm_password = forms.CharField(widget=forms.PasswordInput)

    MIN_PASSWORD_LENGTH = 6

    def clean_email(self):
        email = self.cleaned_data['email'].strip().lower()
        if get_user_model().objects.filter(email__iexact=email).exists():
            raise forms.ValidationError('An account with this email already exists')
        return email

    def clean(self):
        cleaned = super().clean()
        password = cleaned.get('password') or ''
        if password != cleaned.get('confirm_password'):
            raise forms.ValidationError('Passwords do not match')
        if len(password) < self.MIN_PASSWORD_LENGTH:
            raise forms.ValidationError(
                f'Password must be at least {self.MIN_PASSWORD_LENGTH} characters'
            )
        return cleaned
