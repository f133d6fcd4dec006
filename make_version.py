#!/usr/bin/env python
if __name__ == '__main__':
    import subprocess as sp
    import re
    from pathlib import Path

    version_file = Path('mvgp/_version.py')
    version_info = {'__git_hash__': '',
                    '__version__': '0+unknown'}

    # keep whatever an existing version file records unless git knows better
    if version_file.exists():
        version_text = version_file.read_text()
        version_info.update(
            re.findall(r'(__[A-Za-z_]+__)\s*=\s*"([^"]*)"', version_text)
            )

    try:
        git_hash = sp.check_output(['git', 'rev-parse', 'HEAD'],
                                   stderr=sp.DEVNULL)
        version_info['__git_hash__'] = git_hash.strip().decode()
    except Exception:
        print('Unable to retrieve the current git hash')

    try:
        desc = sp.check_output(['git', 'describe', '--tags', '--always',
                                '--dirty'], stderr=sp.DEVNULL)
        public, *local = desc.strip().decode().split('-')
        if re.match(r'\d', public):
            version = public + ('+' + '.'.join(local) if local else '')
            version_info['__version__'] = version
        else:
            print('No version tag found, keeping %s'
                  % version_info['__version__'])
    except Exception:
        print('Unable to retrieve the current version from git')

    with version_file.open('w') as fb:
        fb.write('__git_hash__ = "%s"\n' % version_info['__git_hash__'])
        fb.write('__version__ = "%s"\n' % version_info['__version__'])
