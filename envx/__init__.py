"""
Envx encrypts per-stage environment files with GPG.

Each stage of a project keeps its variables in a file named '.env.<stage>'. Envx encrypts those
files into '.env.<stage>.gpg' so they can be committed, and decrypts them again when they are
needed. The gpg command performs all encryption and decryption using a passphrase per stage.

The rules used to pair filenames are:

\b
    * '.env.production' is encrypted to '.env.production.gpg'.
    * '.env.example' and '.env.template' are never treated as stages.

Passphrases are taken from, in order:

\b
    * the --passphrase option (or $ENVX_PASSPHRASE),
    * the variable named by --secret in .envrc or the environment,
    * the variable '<STAGE>_SECRET' in .envrc or the environment,
    * an interactive prompt.

Create a stage and store a secret for it:

\b
    $ envx create -e production
    $ envx interactive --generate

Encrypt one stage, or every stage:

\b
    $ envx encrypt -e production
    $ envx encrypt --all

Decrypt a stage, or copy it into '.env' for the application to use:

\b
    $ envx decrypt -e production
    $ envx copy -e production
"""

__version__ = '1.0.0'
