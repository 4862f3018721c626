'''
Loading and validation of certificate configuration files.
'''
import os
import logging
import datetime

import yaml
import fastjsonschema

from fastjsonschema.exceptions import JsonSchemaValueException

import tlsfix.exc as t_exc
import tlsfix.common as t_common

logger = logging.getLogger(__name__)

_JsValidators = {}

subjschema = {
    'type': 'object',
    'properties': {
        'c': {'type': 'string'},
        'o': {'type': 'string'},
        'ou': {'type': 'string'},
        'l': {'type': 'string'},
        'st': {'type': 'string'},
        'cn': {'type': 'string'},
        'extraNames': {
            'type': 'object',
            'additionalProperties': {'type': 'string'},
        },
    },
    'additionalProperties': False,
}

strlist = {'type': 'array', 'items': {'type': 'string'}}

CERT_SCHEMA = {
    'type': 'object',
    'properties': {
        'keyType': {'type': 'string'},
        'purpose': {'type': 'string'},
        'subject': subjschema,
        'parent': {'type': 'string'},
        'notBefore': {'type': 'string'},
        'notAfter': {'type': 'string'},
        'hostnames': strlist,
        'ips': strlist,
        'emails': strlist,
        'uris': strlist,
        'ocspServer': strlist,
        'crls': strlist,
        'ca': {'type': 'boolean'},
        'maxPathLen': {'type': 'integer', 'minimum': 0},
        'signatureAlg': {'type': 'string'},
        'keyUsage': {'type': 'string'},
        'extendedKeyUsage': {'type': 'string'},
        'serial': {'type': 'string'},
        'ski': {'type': 'string'},
        'issuer': subjschema,
        'aki': {'type': 'string'},
    },
    'additionalProperties': False,
}

CONF_SCHEMA = {
    'type': 'object',
    'properties': {
        'certs': {
            'type': 'object',
            'additionalProperties': CERT_SCHEMA,
        },
    },
    'required': ['certs'],
}

# YAML turns unquoted dates into date objects
timekeys = ('notBefore', 'notAfter')

def getJsValidator(schema, use_default=True):
    '''
    Get a fastjsonschema callable.

    Args:
        schema (dict): A JSON Schema object.
        use_default (bool): Whether to insert "default" key arguments into the validated data structure.

    Returns:
        callable: A callable function that validates data against the schema, raising BadConfValu.
    '''
    if schema.get('$schema') is None:
        schema['$schema'] = 'http://json-schema.org/draft-07/schema#'

    key = (id(schema), use_default)
    func = _JsValidators.get(key)
    if func:
        return func

    func = fastjsonschema.compile(schema, use_default=use_default)

    def wrap(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except JsonSchemaValueException as e:
            raise t_exc.BadConfValu(mesg=e.message, name=e.name) from e

    _JsValidators[key] = wrap
    return wrap

def _normTime(valu):
    if isinstance(valu, datetime.datetime):
        if valu.tzinfo is None:
            return valu.strftime('%Y-%m-%d %H:%M:%S')
        return valu.isoformat()

    if isinstance(valu, datetime.date):
        return valu.strftime('%Y-%m-%d')

    return valu

def normCerts(certs):
    '''
    Normalize YAML specific values in a mapping of certificate descriptions.

    Returns:
        dict: A new mapping. Empty descriptions become empty dictionaries.
    '''
    ret = {}
    for name, desc in certs.items():

        if desc is None:
            desc = {}

        if isinstance(desc, dict):
            desc = dict(desc)
            for key in timekeys:
                if key in desc:
                    desc[key] = _normTime(desc[key])

        ret[name] = desc

    return ret

def reqValidCerts(certs):
    '''
    Validate a mapping of certificate names to descriptions.

    Args:
        certs (dict): The certificate descriptions.

    Raises:
        BadConfValu: If a description is not schema valid.

    Returns:
        dict: The normalized descriptions.
    '''
    if not isinstance(certs, dict):
        raise t_exc.BadConfValu(mesg='Certificates must be a mapping of name to description', name='certs')

    certs = normCerts(certs)

    valid = getJsValidator(CERT_SCHEMA)
    for name, desc in certs.items():
        try:
            valid(desc)
        except t_exc.BadConfValu as e:
            raise t_exc.BadConfValu(mesg=f'Invalid certificate {name}: {e.get("mesg")}',
                                    name=name, valu=e.get('name')) from None

    return certs

def loadConfFile(path):
    '''
    Load a YAML or JSON certificate configuration file.

    Args:
        path (str): The configuration file path.

    Raises:
        NoSuchFile: If the file does not exist.
        BadConfValu: If the file is not a valid configuration.

    Returns:
        dict: The configuration, with ``certs`` normalized.
    '''
    path = t_common.reqpath(path)

    try:
        conf = t_common.yamlload(path)
    except yaml.YAMLError as e:
        raise t_exc.BadConfValu(mesg=f'Failed to parse {path}: {e}', name=os.path.basename(path)) from None

    if not isinstance(conf, dict):
        raise t_exc.BadConfValu(mesg=f'Configuration {path} must be a mapping', name=os.path.basename(path))

    if isinstance(conf.get('certs'), dict):
        conf['certs'] = reqValidCerts(conf['certs'])

    getJsValidator(CONF_SCHEMA)(conf)

    logger.debug('Loaded %d certificate descriptions from %s', len(conf['certs']), path,
                 extra={'tlsfix': {'path': path}})
    return conf
