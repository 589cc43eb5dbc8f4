import sys
import os
import pytest
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from werkzeug.datastructures import MultiDict
from core.cache_key import derive_key, query_from_multidict

def test_key_format():
    query = {'year': '2025', 'tz': 'Etc/UTC', 'month': '1'}
    assert derive_key(query) == 'month:1;tz:Etc/UTC;year:2025'

def test_key_is_stable_across_calls():
    query = {'tz': 'Etc/UTC', 'hour': '0'}
    assert derive_key(query) == derive_key(query)

def test_key_independent_of_insertion_order():
    a = {'tz': 'Etc/UTC', 'year': '2025', 'additionalTimezones': 'Asia/Tokyo'}
    b = {'additionalTimezones': 'Asia/Tokyo', 'year': '2025', 'tz': 'Etc/UTC'}
    assert derive_key(a) == derive_key(b)

def test_sequence_values_joined_in_order():
    query = {'additionalTimezones': ['Europe/Paris', 'Asia/Tokyo']}
    assert derive_key(query) == 'additionalTimezones:Europe/Paris,Asia/Tokyo'

def test_sequence_order_matters():
    a = {'additionalTimezones': ['Europe/Paris', 'Asia/Tokyo']}
    b = {'additionalTimezones': ['Asia/Tokyo', 'Europe/Paris']}
    assert derive_key(a) != derive_key(b)

def test_key_sensitive_to_values():
    assert derive_key({'tz': 'UTC'}) != derive_key({'tz': 'Etc/UTC'})
    assert derive_key({'hour': '1'}) != derive_key({'hour': '2'})

def test_sorting_is_case_insensitive():
    query = {'Zeta': '1', 'alpha': '2', 'Beta': '3'}
    assert derive_key(query) == 'alpha:2;Beta:3;Zeta:1'

def test_empty_query():
    assert derive_key({}) == ''

def test_query_from_multidict_repeated_keys():
    args = MultiDict([('tz', 'Etc/UTC'), ('additionalTimezones', 'Asia/Tokyo'),
                      ('additionalTimezones', 'Europe/Paris')])
    query = query_from_multidict(args)
    assert query == {'tz': 'Etc/UTC', 'additionalTimezones': ['Asia/Tokyo', 'Europe/Paris']}

def test_punctuation_sorts_before_digits():
    query = {'a1': 'x', 'a_b': 'y'}
    assert derive_key(query) == 'a_b:y;a1:x'

def test_shorter_prefix_sorts_first():
    query = {'abc': '1', 'ab': '2'}
    assert derive_key(query) == 'ab:2;abc:1'
