"""A collection of tests for planarc.preprocessors."""
# Copyright (C) TeNPy Developers, Apache license
import pytest

import planarc as pc
from planarc.expressions import (AnnotatedBlock, BindObject, Block, CheckArity, Conj,
                                 ConstructBraiding, ExportObject, Handle, OpaqueBlock, Product,
                                 ScalarTerm, SpaceRef, TensorTerm, assign, block, conj, define, prod,
                                 tensor)
from planarc.preprocessors import (bind_objects, binarize_products, braiding_strands,
                                   close_index_map, conj_to_adjoint, construct_braiding_tensors,
                                   locate_index, purge_braiding_tensors, remove_braiding_tensors)


def braid(left, right, adjoint=False):
    return tensor(pc.dummy_config.config.braiding_name, left, right, adjoint)


def test_conj_to_adjoint():
    A = tensor('A', ['a'], ['b'])
    assert conj_to_adjoint(conj(A)) == TensorTerm('A', ('b',), ('a',), True)
    assert conj_to_adjoint(conj(conj(A))) == A
    # numbers are conjugated, named scalars are not
    res = conj_to_adjoint(conj(prod(2j, 'x', A)))
    assert res == Product((ScalarTerm(-2j), Conj(ScalarTerm('x')), A.flipped()))
    # distributes over sums and is applied to both sides of an assignment
    B = tensor('B', ['a'], ['b'])
    ex = define(tensor('E', 'b', 'a'), conj(A - B))
    res = conj_to_adjoint(ex)
    assert res.rhs == pc.Sum((A.flipped(), B.flipped()), (+1, -1))
    assert res.lhs == ex.lhs
    # recurses into blocks, but not into annotated blocks
    annotated = AnnotatedBlock((conj(A),))
    assert conj_to_adjoint(block(conj(A), annotated)) == block(A.flipped(), annotated)
    assert conj_to_adjoint(OpaqueBlock('for', conj(A))).body == A.flipped()


def test_binarize_products():
    A, B, C = tensor('A', 'a', 'b'), tensor('B', 'b', 'c'), tensor('C', 'c', 'd')
    ex = prod(A, B, C)
    assert binarize_products(ex) == Product((Product((A, B)), C))
    assert binarize_products(ex, order=('A', ('B', 'C'))) == Product((A, Product((B, C))))
    order = pc.ContractionTree.from_nested_containers((('C', 'A'), 'B'))
    assert binarize_products(ex, order=order) == Product((Product((C, A)), B))
    # scalars are multiplied in front
    res = binarize_products(prod(A, 2, B, C), order=('A', ('B', 'C')))
    assert res == Product((ScalarTerm(2), Product((A, Product((B, C))))))
    # adjoint factors are named with a prime
    Ad = A.flipped()
    res = binarize_products(prod(Ad, B, C), order=(("A'", 'B'), 'C'))
    assert res == Product((Product((Ad, B)), C))
    # products with other factors fall back to left to right
    res = binarize_products(prod(A, B, tensor('D', 'c', 'd')), order=('A', ('B', 'C')))
    assert res == Product((Product((A, B)), tensor('D', 'c', 'd')))
    # statements and nested products
    res = binarize_products(block(define(tensor('E', 'a', 'd'), prod(A, B, C) + prod(A, B, C))))
    assert res.statements[0].rhs.terms[0] == Product((Product((A, B)), C))
    with pytest.raises(ValueError, match='Duplicate'):
        binarize_products(ex, order=('A', ('B', 'A')))


def test_bind_objects():
    symbols = pc.SymbolTable()
    ex = define(tensor('E', 'a', 'b'), tensor('A', 'a', 'c') * tensor('B', 'c', 'b'))
    res = bind_objects(ex, symbols)
    a0, a1, a2 = Handle('alias', 0), Handle('alias', 1), Handle('alias', 2)
    assert symbols.aliases == dict(A=a0, B=a1, E=a2)
    assert res.objects == ('A', 'B', 'E')
    assert res.pre == AnnotatedBlock((BindObject(a0, 'A'), BindObject(a1, 'B')))
    assert res.checks == AnnotatedBlock((CheckArity(a0, 'A', 1, 1), CheckArity(a1, 'B', 1, 1)))
    assert res.post == AnnotatedBlock((ExportObject('E', a2),))
    assert res.expression == define(TensorTerm(a2, ('a',), ('b',)),
                                     TensorTerm(a0, ('a',), ('c',)) * TensorTerm(a1, ('c',), ('b',)))
    assert res.as_block().statements == (res.pre, res.checks, res.expression, res.post)


def test_bind_objects_existing():
    A = tensor('A', ['a', 'b'])
    ex = block(
        assign(A, 2 * A),  # mutating an existing object
        define(tensor('B', 'a', 'b'), A.flipped()),  # adjoint reference
        define(tensor('C', 'a', 'b'), tensor('B', 'a', 'b')),  # B is not pre-existing
        assign('s', tensor('A', ['a', 'b']) * tensor('C', 'b', 'a')),
    )
    res = bind_objects(ex)
    assert res.objects == ('A', 'B', 'C')
    assert [b.name for b in res.pre.statements] == ['A']
    assert [(c.num_out, c.num_in) for c in res.checks.statements] == [(2, 0)] * 4
    assert [e.name for e in res.post.statements] == ['A', 'B', 'C']
    # no checks if disabled
    res = bind_objects(ex, check_arity=False)
    assert res.checks == AnnotatedBlock(())


def test_bind_objects_braiding():
    ex = define(tensor('E', ['c', 'd']), tensor('A', ['a', 'b']) * braid(['d', 'c'], ['a', 'b']))
    res = bind_objects(ex)
    assert res.objects == ('A', 'E')
    assert res.expression.rhs.factors[1] == braid(['d', 'c'], ['a', 'b'])
    with pytest.raises(pc.ReservedNameError, match='reserved'):
        bind_objects(define(braid(['d', 'c'], ['a', 'b']), tensor('A', ['a', 'b', 'c', 'd'])))


def test_braiding_strands():
    assert braiding_strands(braid(['d', 'c'], ['a', 'b'])) == (('a', 'c'), ('b', 'd'))
    assert braiding_strands(braid(['c', 'd'], ['b', 'a'], adjoint=True)) == (('a', 'c'), ('b', 'd'))
    with pytest.raises(pc.BraidingError, match='two output and two input'):
        braiding_strands(braid(['a', 'b', 'c'], ['d']))


def test_locate_index():
    A = tensor('A', ['a', 'b'], ['c'])
    B = tensor('B', ['c'], ['d', 'e'])
    assert locate_index('b', [A, B]) == (A, 1)
    assert locate_index('c', [A, B]) == (A, 2)
    assert locate_index('e', [A, B]) == (B, 2)
    assert locate_index('x', [A, B]) is None


def test_construct_braiding_tensors():
    symbols = pc.SymbolTable()
    ex = define(tensor('E', ['c', 'd']), tensor('A', ['a', 'b']) * braid(['d', 'c'], ['a', 'b']))
    res = construct_braiding_tensors(ex, symbols)
    b0 = Handle('braiding', 0)
    assert symbols.handles('braiding') == [b0]
    assert res == Block((
        AnnotatedBlock((ConstructBraiding(b0, SpaceRef('A', 0), SpaceRef('A', 1)),)),
        define(tensor('E', ['c', 'd']), tensor('A', ['a', 'b']) * TensorTerm(b0, ('d', 'c'), ('a', 'b'))),
    ))
    # unchanged if there is no braiding
    ex = define(tensor('E', ['a', 'b']), tensor('A', ['a', 'b']))
    assert construct_braiding_tensors(ex) is ex


def test_construct_braiding_tensors_spaces():
    # space from the outgoing index, which is an input leg of B
    ex = define(tensor('E', ['a', 'b']), braid(['d', 'c'], ['a', 'b']) * tensor('B', [], ['c', 'd']))
    res = construct_braiding_tensors(ex)
    construct, = res.statements[0].statements
    assert construct.space1 == SpaceRef('B', 0, dual=True)
    assert construct.space2 == SpaceRef('B', 1, dual=True)
    # for a mutating assignment, the existing object is a neighbor too
    ex = assign(tensor('E', ['a', 'b', 'c', 'd']), braid(['b', 'a'], ['c', 'd']))
    res = construct_braiding_tensors(ex)
    construct, = res.statements[0].statements
    assert construct.space1 == SpaceRef('E', 2, is_adjoint=True)
    assert construct.space2 == SpaceRef('E', 3, is_adjoint=True)
    # ... but not for a definition
    with pytest.raises(pc.BraidingSpaceError):
        construct_braiding_tensors(define(tensor('E', ['a', 'b', 'c', 'd']), braid(['b', 'a'], ['c', 'd'])))


def test_construct_braiding_tensors_chain():
    # the middle strand connects two braidings
    A = tensor('A', ['a', 'b', 'c'])
    t1 = braid(['y', 'x'], ['a', 'b'])
    t2 = braid(['z', 'w'], ['x', 'c'])
    ex = define(tensor('E', ['y', 'z', 'w']), prod(A, t1, t2))
    res = construct_braiding_tensors(ex)
    c1, c2 = res.statements[0].statements
    assert c1.space1 == SpaceRef('A', 0)
    assert c1.space2 == SpaceRef('A', 1)
    assert c2.space1 == SpaceRef('A', 0)
    assert c2.space2 == SpaceRef('A', 2)


@pytest.mark.parametrize(
    'ex, expect',
    [
        pytest.param(define(tensor('E', ['c', 'd']), tensor('A', ['a', 'b']) * braid(['d', 'c'], ['a', 'b'])),
                     define(tensor('E', ['c', 'd']), tensor('A', ['c', 'd'])),
                     id='outgoing'),
        pytest.param(define(tensor('E', ['a', 'd']), braid(['d', 'c'], ['a', 'b']) * tensor('F', ['c', 'b'])),
                     define(tensor('E', ['a', 'd']), tensor('F', ['a', 'd'])),
                     id='incoming'),
        pytest.param(prod(tensor('A', [1, 2]), braid([3, 4], [1, 2]), tensor('B', [4, 3])),
                     prod(tensor('A', [4, 3]), tensor('B', [4, 3])),
                     id='ints'),
        pytest.param(prod(tensor('A', ['a', 'b']), braid(['c', 'd'], ['a', 'b']), tensor('B', ['d', 'c'])),
                     prod(tensor('A', ['a', 'b']), tensor('B', ['a', 'b'])),
                     id='symbolic'),
    ],
)
def test_remove_braiding_tensors(ex, expect):
    assert remove_braiding_tensors(ex) == expect


def test_remove_braiding_tensors_errors():
    with pytest.raises(pc.BraidingRemovalError, match='not part of a contraction'):
        remove_braiding_tensors(define(tensor('E', ['a', 'b', 'c', 'd']), braid(['b', 'a'], ['c', 'd'])))
    with pytest.raises(pc.BraidingError):
        remove_braiding_tensors(tensor('A', ['a', 'b']) * braid(['a', 'b'], []))
    # annotated blocks are not touched
    ex = AnnotatedBlock((braid(['b', 'a'], ['c', 'd']),))
    assert remove_braiding_tensors(ex) is ex


def test_close_index_map():
    assert close_index_map({1: 2, 2: 3, 3: 3}) == {1: 3, 2: 3, 3: 3}
    assert close_index_map({'a': 'b', 'b': 'b', 'c': 'c'}) == {'a': 'b', 'b': 'b', 'c': 'c'}
    assert close_index_map({}) == {}


def test_purge_braiding_tensors():
    A = tensor('A', ['a', 'b'])
    assert purge_braiding_tensors(A * braid(['b', 'a'], ['a', 'b'])) == A
    with pytest.raises(pc.BraidingRemovalError, match='Unable to remove'):
        purge_braiding_tensors(A * braid(['a', 'b'], ['a', 'b']))
    with pytest.raises(pc.BraidingRemovalError, match='not part of a contraction'):
        purge_braiding_tensors(braid(['b', 'a'], ['a', 'b']))
    # a nested product of braidings only is dropped from the enclosing product
    t1, t2 = braid(['b', 'a'], ['a', 'b']), braid(['c', 'd'], ['d', 'c'])
    assert purge_braiding_tensors(Product((Product((t1, t2)), A))) == A
    assert purge_braiding_tensors(Product((A, Product((t1, Product((t2, A))))))) == Product((A, A))
    with pytest.raises(pc.BraidingRemovalError, match='nothing would remain'):
        purge_braiding_tensors(Product((Product((t1, t2)), t1)))


@pytest.mark.parametrize(
    'ex',
    [
        pytest.param(tensor('A', ['a'], ['b']), id='tensor'),
        pytest.param(conj(conj(conj(tensor('A', ['a'], ['b'])))), id='triple-conj'),
        pytest.param(conj(prod(2j, 'x', tensor('A', ['a'], ['b']), conj(tensor('B', ['b'], ['c'])))),
                     id='product'),
        pytest.param(define(tensor('E', 'b', 'a'), conj(tensor('A', 'a', 'b') - 3 * conj(tensor('B', 'b', 'a')))),
                     id='assignment'),
        pytest.param(block(conj(tensor('A', 'a', 'b')), OpaqueBlock('for', conj(conj('x') * tensor('A', 'a', 'b')))),
                     id='block'),
    ],
)
def test_conj_to_adjoint_idempotent(ex):
    once = conj_to_adjoint(ex)
    assert conj_to_adjoint(once) == once


def test_remove_braiding_tensors_out_of_order():
    # a single strand a -> x1 -> x2 -> x3 -> y through four braidings, listed out of order
    A = tensor('A', ['a', 'b'])
    t1 = braid(['u1', 'x1'], ['a', 'b'])
    t2 = braid(['u2', 'x2'], ['x1', 'u1'])
    t3 = braid(['u3', 'x3'], ['x2', 'u2'])
    t4 = braid(['z', 'y'], ['x3', 'u3'])
    ex = define(tensor('E', ['y', 'z']), prod(A, t2, t1, t4, t3))
    assert remove_braiding_tensors(ex) == define(tensor('E', ['y', 'z']), tensor('A', ['y', 'z']))


def random_braid_chain(np_random, num_legs, num_braidings, int_labels):
    """A tensor ``A`` followed by random crossings of neighboring legs.

    Returns the statement ``E[...] := A[...] * τ[...] * ...`` with the braidings in random order,
    and the indices of ``A`` expected after removing the braidings.
    """
    if int_labels:
        labels = iter(range(1000))
    else:
        labels = (f'i{n}' for n in range(1000))
    A_indices = [next(labels) for _ in range(num_legs)]
    current = list(A_indices)
    strand = {i: n for n, i in enumerate(A_indices)}  # index -> position on A
    braidings = []
    for _ in range(num_braidings):
        k = int(np_random.integers(num_legs - 1))
        i1a, i2a = current[k], current[k + 1]
        i1b, i2b = next(labels), next(labels)
        if np_random.random() < 0.5:
            braidings.append(braid([i1b, i2b], [i2a, i1a], adjoint=True))
        else:
            braidings.append(braid([i2b, i1b], [i1a, i2a]))
        strand[i1b] = strand[i1a]
        strand[i2b] = strand[i2a]
        current[k], current[k + 1] = i2b, i1b
    order = np_random.permutation(len(braidings))
    lhs = tensor('E', current)
    ex = define(lhs, prod(tensor('A', A_indices), *[braidings[n] for n in order]))
    expect_A = [None] * num_legs
    for i in current:
        expect_A[strand[i]] = i
    return ex, expect_A


@pytest.mark.parametrize('int_labels', [True, False])
@pytest.mark.parametrize('binarize', [True, False])
def test_remove_braiding_tensors_random_chains(int_labels, binarize, np_random):
    for _ in range(20):
        num_legs = int(np_random.integers(2, 6))
        num_braidings = int(np_random.integers(1, 8))
        ex, expect_A = random_braid_chain(np_random, num_legs, num_braidings, int_labels)
        if binarize:
            ex = binarize_products(ex)
        res = remove_braiding_tensors(ex)
        # the result only uses the free indices of the lhs, each once on A
        assert res == define(ex.lhs, tensor('A', expect_A))
