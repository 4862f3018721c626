'''
Plausible looking random names for certificates which are given no identity.
'''
import random

consonants = 'bcdfghjklmnprstvz'
vowels = 'aeiou'

orgsuffixes = ('Inc', 'LLC', 'Ltd', 'Corp', 'Labs', 'Group')
countries = ('AU', 'BR', 'CA', 'CH', 'DE', 'FR', 'GB', 'IE', 'JP', 'NL', 'NZ', 'SE', 'US')

_rand = random.Random()

def name(maxlen=12):
    '''
    Generate a capitalized, pronounceable random word.

    Args:
        maxlen (int): The maximum length of the word.

    Returns:
        str: A word between 1 and maxlen characters long.
    '''
    if maxlen < 1:
        maxlen = 1

    size = _rand.randint(min(3, maxlen), maxlen)

    chars = []
    usevowel = _rand.random() < 0.3
    for _ in range(size):
        if usevowel:
            chars.append(_rand.choice(vowels))
        else:
            chars.append(_rand.choice(consonants))
        usevowel = not usevowel

    return ''.join(chars).capitalize()

def pkixName():
    '''
    Generate a random subject in the same shape as a certificate description subject.

    Returns:
        dict: A subject dictionary with cn, o, l, st and c keys.
    '''
    return {
        'cn': f'{name(10).lower()}.{name(8).lower()}.test',
        'o': f'{name(12)} {_rand.choice(orgsuffixes)}',
        'l': name(14),
        'st': name(14),
        'c': _rand.choice(countries),
    }
